"""Tests for the ordered command cascade."""

import pytest

from netra.intent.router import CommandIntent, CommandRouter, IntentKind, Vocabulary
from netra.tracking.tracker import BoundingBox, TrackedEntity

BOX = BoundingBox(ymin=100, xmin=100, ymax=300, xmax=300)


def _entity(entity_id, name):
    return TrackedEntity(id=entity_id, name=name, box=BOX)


@pytest.fixture
def router():
    return CommandRouter()


# ---------------------------------------------------------------------------
# Fixed command sets
# ---------------------------------------------------------------------------


class TestCommandSets:
    @pytest.mark.parametrize("transcript,kind", [
        ("stop", IntentKind.STOP),
        ("cancel that", IntentKind.STOP),
        ("auto scan", IntentKind.TOGGLE_AUTO_SCAN),
        ("surveillance please", IntentKind.TOGGLE_AUTO_SCAN),
        ("look around", IntentKind.SCAN),
        ("skan", IntentKind.SCAN),
        ("where am i", IntentKind.LOCATION),
        ("help", IntentKind.HELP),
    ])
    def test_routes_keywords(self, router, transcript, kind):
        assert router.route(transcript).kind is kind

    def test_stop_wins_over_everything(self, router):
        """The user can always interrupt, even mid-sentence about scanning."""
        assert router.route("stop scanning").kind is IntentKind.STOP

    def test_auto_scan_checked_before_scan(self, router):
        assert router.route("start auto scan").kind is IntentKind.TOGGLE_AUTO_SCAN

    def test_report_location_goes_to_scan(self, router):
        """'report' is a scan keyword and the scan set is checked before location."""
        assert router.route("report location").kind is IntentKind.SCAN

    def test_command_beats_entity_name(self, router):
        entities = [_entity(1, "scanner")]
        assert router.route("scan", entities).kind is IntentKind.SCAN

    def test_custom_vocabulary(self):
        router = CommandRouter(vocabulary=Vocabulary(help=["manual"]))
        assert router.route("manual").kind is IntentKind.HELP


# ---------------------------------------------------------------------------
# Object references
# ---------------------------------------------------------------------------


class TestObjectReference:
    def test_prefix_with_partial_name(self, router):
        """'describe the mug' picks out 'coffee mug'."""
        entities = [_entity(7, "laptop"), _entity(9, "coffee mug")]
        intent = router.route("describe the mug", entities)
        assert intent == CommandIntent.object_reference(9)

    def test_prefix_with_full_name(self, router):
        entities = [_entity(1, "cup"), _entity(2, "laptop")]
        assert router.route("look at the laptop", entities).entity_id == 2

    def test_implicit_name(self, router):
        entities = [_entity(3, "cup")]
        intent = router.route("the cup", entities)
        assert intent.kind is IntentKind.OBJECT_REFERENCE
        assert intent.entity_id == 3

    def test_punctuation_in_label_ignored(self, router):
        entities = [_entity(4, "Laptop.")]
        assert router.route("laptop", entities).entity_id == 4

    def test_first_entity_in_order_wins(self, router):
        entities = [_entity(5, "cup"), _entity(6, "cup")]
        assert router.route("cup", entities).entity_id == 5

    def test_prefix_without_target_is_free_form(self, router):
        entities = [_entity(1, "cup")]
        intent = router.route("describe", entities)
        assert intent == CommandIntent.free_form("describe")

    def test_prefix_with_unknown_target_is_free_form(self, router):
        entities = [_entity(1, "cup")]
        intent = router.route("read the sign", entities)
        assert intent.kind is IntentKind.FREE_FORM
        assert intent.text == "read the sign"

    def test_routing_does_not_mutate_entities(self, router):
        entities = (_entity(1, "cup"),)
        router.route("describe the cup", entities)
        assert entities == (_entity(1, "cup"),)


class TestStripIntentPrefix:
    def test_strips_prefix_and_article(self, router):
        assert router.strip_intent_prefix("tell me about the red cup") == "red cup"

    def test_strips_only_leading_article(self, router):
        assert router.strip_intent_prefix("inspect that thing") == "thing"

    def test_no_prefix(self, router):
        assert router.strip_intent_prefix("red cup") is None

    def test_prefix_only(self, router):
        assert router.strip_intent_prefix("describe") == ""


# ---------------------------------------------------------------------------
# Free-form and noise
# ---------------------------------------------------------------------------


class TestFallbacks:
    def test_question_is_free_form(self, router):
        intent = router.route("  what is this  ")
        assert intent.kind is IntentKind.FREE_FORM
        assert intent.text == "what is this"

    @pytest.mark.parametrize("transcript", ["", " ", "a"])
    def test_noise(self, router, transcript):
        assert router.route(transcript).kind is IntentKind.NOISE
