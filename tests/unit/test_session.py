import random
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT))

from constellation.models.layout import LayoutResult  # noqa: E402
from constellation.models.providers import NarrativeResult  # noqa: E402
from constellation.models.thought import Thought  # noqa: E402
from constellation.services.analyzer import ConstellationAnalyzer  # noqa: E402
from constellation.services.errors import ConstellationInputError  # noqa: E402
from constellation.services.layout import LayoutEngine  # noqa: E402
from constellation.services.session import ConstellationSession  # noqa: E402

THOUGHTS = [
    Thought(id="t1", text="I love hiking mountains"),
    Thought(id="t2", text="I love hiking trails"),
    Thought(id="t3", text="Tax season is stressful"),
    Thought(id="t4", text="Learn to play the cello"),
]


@pytest.fixture
def session():
    return ConstellationSession(
        analyzer_factory=lambda threshold: ConstellationAnalyzer(threshold, rng=random.Random(2)),
        layout_engine=LayoutEngine(rng=random.Random(2)),
    )


def test_load_and_threshold_bump_generation(session):
    state = session.load(THOUGHTS)
    assert state.generation == 1
    assert len(state.nodes) == 3

    state = session.set_merge_threshold(0.9)
    assert state.generation == 2
    assert len(state.nodes) == 4


def test_invalid_threshold_is_rejected(session):
    with pytest.raises(ConstellationInputError):
        session.set_merge_threshold(1.0)


def test_state_is_replaced_not_mutated(session):
    before = session.load(THOUGHTS)
    after = session.tick()
    assert before is not after
    assert before.nodes is not after.nodes


def test_organize_sets_targets_and_tick_eases(session):
    session.load(THOUGHTS)
    state = session.organize()
    assert state.is_organized
    node = state.nodes[0]
    assert node.target_x is not None

    ticked = session.tick().nodes[0]
    expected_x = node.x + (node.target_x - node.x) * 0.1
    assert ticked.x == pytest.approx(expected_x) or ticked.x == node.target_x

    state = session.reset_layout()
    assert not state.is_organized
    assert state.nodes[0].target_x is None


@pytest.mark.asyncio
async def test_stale_layout_is_discarded(session):
    session.load(THOUGHTS)

    async def slow_layout(nodes):
        session.load(THOUGHTS[:2])
        return LayoutResult()

    assert await session.organize_with(slow_layout) is False
    assert not session.state.is_organized


@pytest.mark.asyncio
async def test_current_layout_is_applied(session):
    session.load(THOUGHTS)

    async def remote_layout(nodes):
        return LayoutEngine(rng=random.Random(4)).layout(nodes)

    assert await session.organize_with(remote_layout) is True
    assert session.state.is_organized


def test_manual_group_hides_children_until_toggled(session):
    session.set_merge_threshold(0.9)
    session.load(THOUGHTS)

    parent = session.create_group(["t3", "t4"])
    assert parent.text == "Group: 2 thoughts"
    assert parent.merged_ids == ["t3", "t4"]
    assert parent.radius == 130.0
    visible = {node.id for node in session.state.visible_nodes}
    assert "t3" not in visible and parent.id in visible

    session.toggle_group(parent.id)
    assert "t3" in {node.id for node in session.state.visible_nodes}

    session.clear_hidden()
    assert session.state.hidden == frozenset()


def test_group_needs_two_members(session):
    session.load(THOUGHTS)
    with pytest.raises(ConstellationInputError):
        session.create_group(["t3"])
    with pytest.raises(ConstellationInputError):
        session.toggle_group("missing")


def test_insights_follow_current_nodes(session):
    session.load(THOUGHTS)
    report = session.insights()
    assert report.stats.total_thoughts == 3


@pytest.mark.asyncio
async def test_stale_narrative_is_discarded(session):
    session.load(THOUGHTS)

    async def narrator(request):
        session.set_merge_threshold(0.5)
        return NarrativeResult(synthesis="late")

    assert await session.refresh_narrative(narrator) is None
    assert session.state.narrative is None

    async def prompt_narrator(request):
        return NarrativeResult(synthesis="fresh")

    result = await session.refresh_narrative(prompt_narrator)
    assert result.synthesis == "fresh"
    assert session.state.narrative.synthesis == "fresh"


@pytest.mark.asyncio
async def test_stored_narrative_leads_the_insights(session):
    session.load(THOUGHTS)
    requests = []

    async def narrator(request):
        requests.append(request)
        return NarrativeResult(synthesis="You keep returning to **hiking**.", questions=["Where next?"])

    await session.refresh_narrative(narrator)

    assert [thought.id for thought in requests[0].thoughts] == [node.id for node in session.state.nodes]
    assert requests[0].stats.total_thoughts == 3
    report = session.insights()
    assert report.synthesis == "You keep returning to **hiking**."
    assert report.questions[0].question == "Where next?"


@pytest.mark.asyncio
async def test_failed_narrative_keeps_templated_insights(session):
    session.load(THOUGHTS)
    templated = session.insights()

    async def narrator(request):
        return NarrativeResult(error="provider offline")

    await session.refresh_narrative(narrator)
    assert session.insights().synthesis == templated.synthesis
