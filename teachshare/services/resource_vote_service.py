"""Resource voting: counter and credit deltas for up/down/remove transitions."""

from dataclasses import dataclass

from teachshare.constants import RC_CONFIG

UPVOTE_RC = RC_CONFIG["RESOURCE_UPVOTE_RECEIVED"]
DOWNVOTE_RC = RC_CONFIG["RESOURCE_DOWNVOTE_RECEIVED"]

VOTE_VALUES = {"up": 1, "down": -1, "remove": None}


@dataclass(frozen=True)
class VoteDelta:
    """Changes to apply for a single vote action.

    ``new_value`` is the vote left on the row afterwards (1, -1 or None).
    ``credits`` goes to the resource owner and ``upvotes_received`` to
    the owner's lifetime upvote counter.
    """

    new_value: int | None
    upvotes: int = 0
    downvotes: int = 0
    credits: int = 0
    upvotes_received: int = 0
    changed: bool = True

    @property
    def net(self) -> int:
        return self.upvotes - self.downvotes

    @property
    def reason(self) -> str:
        if self.new_value == 1:
            return "resource_upvoted"
        if self.new_value == -1:
            return "resource_downvoted"
        return "resource_vote_removed"


def _credits_for(value: int | None) -> int:
    if value == 1:
        return UPVOTE_RC
    if value == -1:
        return DOWNVOTE_RC
    return 0


def compute_vote_delta(previous: int | None, action: str) -> VoteDelta:
    """
    Work out what a vote action does given the voter's previous vote.

    ``previous`` is the stored value (1, -1) or None when the user has not
    voted. ``action`` is "up", "down" or "remove". Repeating the current
    vote, or removing a vote that does not exist, changes nothing.
    Credits awarded by a vote are reversed when the vote goes away.
    """
    if action not in VOTE_VALUES:
        raise ValueError(f"Unknown vote action: {action}")
    new_value = VOTE_VALUES[action]

    if new_value == previous:
        return VoteDelta(new_value=previous, changed=False)

    upvotes = (1 if new_value == 1 else 0) - (1 if previous == 1 else 0)
    downvotes = (1 if new_value == -1 else 0) - (1 if previous == -1 else 0)
    return VoteDelta(
        new_value=new_value,
        upvotes=upvotes,
        downvotes=downvotes,
        credits=_credits_for(new_value) - _credits_for(previous),
        upvotes_received=upvotes,
    )
