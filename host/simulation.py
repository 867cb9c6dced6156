"""
Fixed-step Pong physics.

The host runs it authoritatively (walls, paddles and scoring). The client
runs the same integrator without scoring to dead-reckon the ball between
snapshots, so its prediction matches the host between corrections.
"""

import random

from common.config import (
    FIELD_WIDTH, FIELD_HEIGHT, PADDLE_WIDTH, PADDLE_HEIGHT, PADDLE_GAP,
    BALL_SIZE, BALL_SPEED, BALL_SPEED_MAX, PADDLE_ACCELERATION,
    HIT_FORGIVENESS, SCORE_MARGIN, SUB_STEP, MAX_FRAME_TIME
)

LEFT_CONTACT_X = PADDLE_WIDTH + PADDLE_GAP
RIGHT_CONTACT_X = FIELD_WIDTH - PADDLE_WIDTH - BALL_SIZE - PADDLE_GAP


def clamp_paddle(y: float) -> float:
    """Clamp a paddle top edge into the field."""
    return max(0.0, min(float(FIELD_HEIGHT - PADDLE_HEIGHT), y))


def _in_hit_window(ball_y: float, paddle_y: float) -> bool:
    return (ball_y + BALL_SIZE >= paddle_y - HIT_FORGIVENESS and
            ball_y <= paddle_y + PADDLE_HEIGHT + HIT_FORGIVENESS)


def advance(state, dt: float, authoritative: bool = True):
    """
    Integrate the ball by dt, then resolve walls, paddles and scoring.

    Args:
        state: GameState to mutate in place
        dt: seconds to integrate; callers keep this at or below SUB_STEP
        authoritative: only the host scores points

    Returns:
        1 or 2 for the player that scored during this step, else None.
    """
    ball = state.ball
    ball.x += ball.dx * dt
    ball.y += ball.dy * dt

    # Walls
    if ball.y <= 0:
        ball.y = 0.0
        ball.dy = abs(ball.dy)
    if ball.y + BALL_SIZE >= FIELD_HEIGHT:
        ball.y = float(FIELD_HEIGHT - BALL_SIZE)
        ball.dy = -abs(ball.dy)

    # Left paddle
    if (ball.x < LEFT_CONTACT_X and ball.x + BALL_SIZE > 0 and
            _in_hit_window(ball.y, state.paddle1_y)):
        ball.dx = min(abs(ball.dx) * PADDLE_ACCELERATION, BALL_SPEED_MAX)
        ball.x = float(LEFT_CONTACT_X)

    # Right paddle
    if (ball.x + BALL_SIZE > FIELD_WIDTH - PADDLE_WIDTH - PADDLE_GAP and
            ball.x < FIELD_WIDTH and
            _in_hit_window(ball.y, state.paddle2_y)):
        ball.dx = max(-abs(ball.dx) * PADDLE_ACCELERATION, -BALL_SPEED_MAX)
        ball.x = float(RIGHT_CONTACT_X)

    if not authoritative:
        return None

    if ball.x < -SCORE_MARGIN:
        state.score2 += 1
        reset_ball(state)
        return 2
    if ball.x > FIELD_WIDTH + SCORE_MARGIN:
        state.score1 += 1
        reset_ball(state)
        return 1
    return None


def reset_ball(state):
    """Centre the ball and freeze it for the respawn delay."""
    ball = state.ball
    ball.x = FIELD_WIDTH / 2
    ball.y = FIELD_HEIGHT / 2
    ball.dx = 0.0
    ball.dy = 0.0
    ball.frozen = True


def serve_ball(state, rng: random.Random = None):
    """Launch the ball along a random diagonal at base speed."""
    rng = rng or random
    ball = state.ball
    ball.dx = rng.choice((-1, 1)) * BALL_SPEED
    ball.dy = rng.choice((-1, 1)) * BALL_SPEED
    ball.frozen = False


def step_frame(state, elapsed: float, authoritative: bool = True,
               on_score=None) -> int:
    """
    Integrate one frame's elapsed time in bounded sub-steps.

    elapsed is capped at MAX_FRAME_TIME so a stall cannot cause runaway
    integration; the remainder is split into increments of at most
    SUB_STEP so the ball cannot tunnel through a paddle at low frame rates.

    Returns:
        Number of sub-steps taken.
    """
    remaining = min(elapsed, MAX_FRAME_TIME)
    steps = 0
    while remaining > 0:
        step = min(remaining, SUB_STEP)
        scorer = advance(state, step, authoritative)
        if scorer is not None and on_score is not None:
            on_score(scorer)
        remaining -= step
        steps += 1
    return steps
