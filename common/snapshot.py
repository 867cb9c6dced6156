"""
Game state records shared by host and client, and the snapshot taken
from them for transmission.
"""

from common.config import (
    FIELD_WIDTH, FIELD_HEIGHT, PADDLE_HEIGHT, BALL_SPEED
)


class Ball:
    """Ball position, velocity and respawn flag."""

    __slots__ = ('x', 'y', 'dx', 'dy', 'frozen')

    def __init__(self, x: float = 0.0, y: float = 0.0,
                 dx: float = 0.0, dy: float = 0.0, frozen: bool = False):
        self.x = x
        self.y = y
        self.dx = dx
        self.dy = dy
        self.frozen = frozen

    def to_dict(self) -> dict:
        return {'x': self.x, 'y': self.y, 'dx': self.dx, 'dy': self.dy}

    def copy(self) -> 'Ball':
        return Ball(self.x, self.y, self.dx, self.dy, self.frozen)

    def __repr__(self):
        return (f"Ball(x={self.x:.1f}, y={self.y:.1f}, "
                f"dx={self.dx:.1f}, dy={self.dy:.1f}, frozen={self.frozen})")


class GameState:
    """
    Mutable game record. The host holds the authoritative instance,
    the client a predicted/blended one.
    """

    def __init__(self):
        centre_paddle = FIELD_HEIGHT / 2 - PADDLE_HEIGHT / 2
        self.ball = Ball(FIELD_WIDTH / 2, FIELD_HEIGHT / 2,
                         BALL_SPEED, BALL_SPEED)
        self.paddle1_y = centre_paddle     # Left, host-controlled
        self.paddle2_y = centre_paddle     # Right, client-controlled
        self.score1 = 0
        self.score2 = 0
        self.status = 'waiting'

    def paddle(self, number: int) -> float:
        return self.paddle1_y if number == 1 else self.paddle2_y

    def set_paddle(self, number: int, y: float):
        if number == 1:
            self.paddle1_y = y
        else:
            self.paddle2_y = y

    def get_snapshot(self) -> 'Snapshot':
        """Create a snapshot of the current authoritative fields."""
        return Snapshot(self.ball.copy(), self.paddle1_y, self.paddle2_y,
                        self.score1, self.score2, self.ball.frozen)


class Snapshot:
    """A complete copy of GameState as sent from host to client."""

    __slots__ = ('ball', 'paddle1_y', 'paddle2_y', 'score1', 'score2',
                 'is_frozen')

    def __init__(self, ball: Ball, paddle1_y: float, paddle2_y: float,
                 score1: int, score2: int, is_frozen: bool = False):
        self.ball = ball
        self.paddle1_y = paddle1_y
        self.paddle2_y = paddle2_y
        self.score1 = score1
        self.score2 = score2
        self.is_frozen = is_frozen

    def paddle(self, number: int) -> float:
        return self.paddle1_y if number == 1 else self.paddle2_y

    def to_dict(self) -> dict:
        return {
            'ball': self.ball.to_dict(),
            'paddle1_y': self.paddle1_y,
            'paddle2_y': self.paddle2_y,
            'score1': self.score1,
            'score2': self.score2,
            'frozen': self.is_frozen,
        }

    @staticmethod
    def from_dict(data: dict) -> 'Snapshot':
        b = data['ball']
        frozen = bool(data.get('frozen', False))
        return Snapshot(Ball(b['x'], b['y'], b['dx'], b['dy'], frozen),
                        data['paddle1_y'], data['paddle2_y'],
                        int(data['score1']), int(data['score2']), frozen)

    def __repr__(self):
        return (f"Snapshot({self.ball!r}, p1={self.paddle1_y:.1f}, "
                f"p2={self.paddle2_y:.1f}, score={self.score1}-{self.score2})")
