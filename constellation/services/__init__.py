"""Analysis engine, layout, insights and the optional provider paths."""
