"""
Client reconciliation: merges authoritative host snapshots into the
locally predicted state without visible pops.
"""

import math

from common.config import SNAP_THRESHOLD, BALL_SMOOTHING, PADDLE_SMOOTHING


def lerp(start: float, end: float, amt: float) -> float:
    """Linear interpolation from start toward end by fraction amt."""
    return (1 - amt) * start + amt * end


class Correction:
    """What a reconcile() call did to the ball."""

    __slots__ = ('kind', 'error')

    def __init__(self, kind: str, error: float):
        self.kind = kind      # 'frozen', 'snap' or 'blend'
        self.error = error    # distance before correction

    def __repr__(self):
        return f"Correction({self.kind}, error={self.error:.2f})"


class Reconciler:
    """
    When a snapshot arrives, pull the predicted ball toward the host's
    ball and smooth the opponent paddle. The local player's own paddle
    is never written: it is authoritative on this endpoint.
    """

    def __init__(self, own_paddle: int = 2, snap_threshold: float = SNAP_THRESHOLD,
                 ball_smoothing: float = BALL_SMOOTHING,
                 paddle_smoothing: float = PADDLE_SMOOTHING):
        self.own_paddle = own_paddle
        self.opponent_paddle = 1 if own_paddle == 2 else 2
        self.snap_threshold = snap_threshold
        self.ball_smoothing = ball_smoothing
        self.paddle_smoothing = paddle_smoothing

    def reconcile(self, state, snapshot) -> Correction:
        """
        Merge snapshot into state in place.

        Args:
            state: local GameState
            snapshot: Snapshot received from the host

        Returns:
            Correction describing how the ball was adjusted.
        """
        ball = state.ball
        target = snapshot.ball
        dist_sq = (ball.x - target.x) ** 2 + (ball.y - target.y) ** 2

        if snapshot.is_frozen:
            # Reset on the host: show it now, never smear it
            ball.x = target.x
            ball.y = target.y
            kind = 'frozen'
        elif dist_sq > self.snap_threshold * self.snap_threshold:
            ball.x = target.x
            ball.y = target.y
            kind = 'snap'
        else:
            ball.x = lerp(ball.x, target.x, self.ball_smoothing)
            ball.y = lerp(ball.y, target.y, self.ball_smoothing)
            kind = 'blend'

        ball.dx = target.dx
        ball.dy = target.dy
        ball.frozen = snapshot.is_frozen

        opponent = self.opponent_paddle
        state.set_paddle(opponent, lerp(state.paddle(opponent),
                                        snapshot.paddle(opponent),
                                        self.paddle_smoothing))

        state.score1 = snapshot.score1
        state.score2 = snapshot.score2

        return Correction(kind, math.sqrt(dist_sq))
