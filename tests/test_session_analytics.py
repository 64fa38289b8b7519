"""
Tests for leaderboard ranking and session analytics on plain rows.
"""
from runtime.agents.session_analytics import compute_session_analytics, rank_guests
from runtime.models.session_models import Guest, PromptType, Response, SessionPrompt


def _guest(name, score, join_order, rounds=0, correct=0):
    return Guest(
        event_id="e1",
        display_name=name,
        score=score,
        join_order=join_order,
        rounds_played=rounds,
        correct_answers=correct,
    )


def _prompt(prompt_type, created_at):
    return SessionPrompt(
        event_id="e1",
        prompt_type=prompt_type,
        sequence_order=1,
        created_at=created_at,
    )


class TestRankGuests:

    def test_score_descending_then_join_order(self):
        guests = [_guest("A", 5, 1), _guest("B", 20, 2), _guest("C", 20, 3), _guest("D", 3, 4)]
        assert [g.display_name for g in rank_guests(guests)] == ["B", "C", "A", "D"]

    def test_input_order_does_not_matter(self):
        guests = [_guest("C", 20, 3), _guest("B", 20, 2)]
        assert [g.display_name for g in rank_guests(guests)] == ["B", "C"]


class TestComputeSessionAnalytics:

    def test_empty_session(self):
        analytics = compute_session_analytics("e1", [], [], [])
        assert analytics.total_responses == 0
        assert analytics.guest_stats == []
        assert analytics.prompt_type_stats == []
        assert analytics.session_duration_minutes == 0

    def test_accuracy_rounding(self):
        analytics = compute_session_analytics(
            "e1", [_guest("A", 20, 1, rounds=3, correct=2), _guest("B", 0, 2)], [], []
        )
        assert [s.accuracy for s in analytics.guest_stats] == [67, 0]

    def test_per_type_stats_and_duration(self):
        p1 = _prompt(PromptType.VERSE_HUNT, "2026-03-01T19:00:00+00:00")
        p2 = _prompt(PromptType.DRILL_DROP, "2026-03-01T19:10:00+00:00")
        p3 = _prompt(PromptType.VERSE_HUNT, "2026-03-01T19:25:00+00:00")
        responses = [
            Response(prompt_id=p1.id, guest_id="g1", event_id="e1", points_earned=10),
            Response(prompt_id=p3.id, guest_id="g1", event_id="e1", points_earned=5),
            Response(prompt_id=p2.id, guest_id="g2", event_id="e1", points_earned=0),
            Response(prompt_id="unknown", guest_id="g2", event_id="e1", points_earned=50),
        ]

        analytics = compute_session_analytics("e1", [], [p1, p2, p3], responses)

        stats = {s.prompt_type: s for s in analytics.prompt_type_stats}
        assert [s.prompt_type for s in analytics.prompt_type_stats] == ["verse_hunt", "drill_drop"]
        assert stats["verse_hunt"].response_count == 2
        assert stats["verse_hunt"].avg_score == 8
        assert stats["drill_drop"].avg_score == 0
        assert analytics.total_responses == 3
        assert analytics.session_duration_minutes == 25
