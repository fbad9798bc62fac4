"""Tests for resource vote transitions."""

import pytest

from teachshare.services.resource_vote_service import compute_vote_delta


class TestComputeVoteDelta:
    """Every previous-vote/action pair and what it does to counters and credits."""

    def test_first_upvote(self):
        delta = compute_vote_delta(None, "up")
        assert delta.changed
        assert delta.new_value == 1
        assert (delta.upvotes, delta.downvotes, delta.net) == (1, 0, 1)
        assert delta.credits == 2
        assert delta.upvotes_received == 1
        assert delta.reason == "resource_upvoted"

    def test_first_downvote(self):
        delta = compute_vote_delta(None, "down")
        assert delta.new_value == -1
        assert (delta.upvotes, delta.downvotes, delta.net) == (0, 1, -1)
        assert delta.credits == -1
        assert delta.upvotes_received == 0
        assert delta.reason == "resource_downvoted"

    def test_switch_down_to_up(self):
        delta = compute_vote_delta(-1, "up")
        assert (delta.upvotes, delta.downvotes, delta.net) == (1, -1, 2)
        assert delta.credits == 3
        assert delta.upvotes_received == 1

    def test_switch_up_to_down(self):
        delta = compute_vote_delta(1, "down")
        assert (delta.upvotes, delta.downvotes, delta.net) == (-1, 1, -2)
        assert delta.credits == -3
        assert delta.upvotes_received == -1

    @pytest.mark.parametrize("previous,action", [(1, "up"), (-1, "down"), (None, "remove")])
    def test_repeat_is_noop(self, previous, action):
        delta = compute_vote_delta(previous, action)
        assert not delta.changed
        assert delta.new_value == previous
        assert delta.credits == 0
        assert delta.net == 0

    def test_remove_upvote_reverses_credit(self):
        delta = compute_vote_delta(1, "remove")
        assert delta.new_value is None
        assert (delta.upvotes, delta.net) == (-1, -1)
        assert delta.credits == -2
        assert delta.upvotes_received == -1
        assert delta.reason == "resource_vote_removed"

    def test_remove_downvote_refunds_owner(self):
        delta = compute_vote_delta(-1, "remove")
        assert (delta.downvotes, delta.net) == (-1, 1)
        assert delta.credits == 1
        assert delta.upvotes_received == 0

    def test_unknown_action(self):
        with pytest.raises(ValueError, match="Unknown vote action"):
            compute_vote_delta(None, "sideways")
