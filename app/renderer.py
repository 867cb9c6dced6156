"""
Pong renderer and input capture using pygame.
Draws the field, paddles, ball and score, and turns the mouse or arrow
keys into a clamped paddle position.
"""

import pygame

from common.config import (
    FIELD_WIDTH, FIELD_HEIGHT, PADDLE_WIDTH, PADDLE_HEIGHT, BALL_SIZE,
    FRAME_RATE
)
from host.simulation import clamp_paddle


BACKGROUND = (5, 5, 5)
CENTRE_LINE = (51, 51, 51)
BALL_COLOR = (255, 255, 255)
PADDLE_COLORS = {
    1: (0, 255, 255),    # Cyan, host
    2: (255, 0, 255),    # Magenta, client
}
KEY_SPEED = 450.0        # pixels per second when steering with the keyboard


class GameRenderer:
    """Pygame-based renderer for a Pong session."""

    def __init__(self, width: int = FIELD_WIDTH, height: int = FIELD_HEIGHT,
                 title: str = "P2P Pong"):
        pygame.init()
        self.width = width
        self.height = height
        self.screen = pygame.display.set_mode((width, height))
        pygame.display.set_caption(title)
        self.font = pygame.font.SysFont('monospace', 14)
        self.big_font = pygame.font.SysFont('monospace', 48, bold=True)
        self.clock = pygame.time.Clock()
        self._mouse_seen = False

    def render(self, state, own_paddle: int, status_text: str = None,
               metrics: dict = None):
        """Render one frame and pace the loop to FRAME_RATE."""
        self.screen.fill(BACKGROUND)

        # Dashed centre line
        x = self.width // 2
        for y in range(0, self.height, 25):
            pygame.draw.line(self.screen, CENTRE_LINE, (x, y), (x, y + 10), 2)

        pygame.draw.rect(self.screen, BALL_COLOR,
                         (int(state.ball.x), int(state.ball.y),
                          BALL_SIZE, BALL_SIZE))

        for number, px in ((1, 0), (2, self.width - PADDLE_WIDTH)):
            rect = (px, int(state.paddle(number)), PADDLE_WIDTH, PADDLE_HEIGHT)
            pygame.draw.rect(self.screen, PADDLE_COLORS[number], rect)
            if number == own_paddle:
                pygame.draw.rect(self.screen, BALL_COLOR, rect, 1)

        self._draw_score(state.score1, state.score2)
        if metrics:
            self._draw_hud(metrics)
        if status_text:
            label = self.font.render(status_text, True, (200, 200, 200))
            self.screen.blit(label, label.get_rect(
                center=(self.width // 2, self.height - 20)))

        pygame.display.flip()
        self.clock.tick(FRAME_RATE)

    def _draw_score(self, score1: int, score2: int):
        left = self.big_font.render(str(score1), True, PADDLE_COLORS[1])
        right = self.big_font.render(str(score2), True, PADDLE_COLORS[2])
        self.screen.blit(left, left.get_rect(center=(self.width // 4, 40)))
        self.screen.blit(right, right.get_rect(center=(3 * self.width // 4, 40)))

    def _draw_hud(self, metrics: dict):
        """Draw a small network stats panel."""
        panel_h = 20 + len(metrics) * 18
        panel = pygame.Surface((200, panel_h))
        panel.set_alpha(180)
        panel.fill((0, 0, 0))
        self.screen.blit(panel, (self.width // 2 - 100, 80))

        y = 85
        for key, val in metrics.items():
            text = self.font.render(f"{key}: {val}", True, (200, 200, 200))
            self.screen.blit(text, (self.width // 2 - 95, y))
            y += 18

    def get_paddle_target(self, current_y: float, dt: float) -> float:
        """
        Read the mouse (or arrow keys / W-S) and return a clamped paddle top.
        The paddle is centred on the cursor, as in the browser version.
        """
        keys = pygame.key.get_pressed()
        direction = ((1.0 if keys[pygame.K_DOWN] or keys[pygame.K_s] else 0.0) -
                     (1.0 if keys[pygame.K_UP] or keys[pygame.K_w] else 0.0))
        if direction:
            self._mouse_seen = False
            return clamp_paddle(current_y + direction * KEY_SPEED * dt)

        if self._mouse_seen and pygame.mouse.get_focused():
            _, mouse_y = pygame.mouse.get_pos()
            return clamp_paddle(mouse_y - PADDLE_HEIGHT / 2)
        return current_y

    def check_quit(self) -> bool:
        """Check if user wants to quit; also notes mouse movement."""
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                return True
            if event.type == pygame.KEYDOWN and event.key == pygame.K_ESCAPE:
                return True
            if event.type == pygame.MOUSEMOTION:
                self._mouse_seen = True
        return False

    def close(self):
        pygame.quit()
