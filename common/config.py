"""
Game constants and configuration.
"""

# Field (pixels, origin top-left)
FIELD_WIDTH = 800
FIELD_HEIGHT = 500
PADDLE_WIDTH = 15
PADDLE_HEIGHT = 100
PADDLE_GAP = 5              # Ball clamp offset in front of a paddle face
BALL_SIZE = 15

# Physics
BALL_SPEED = 400.0          # pixels per second, per axis
BALL_SPEED_MAX = 600.0      # horizontal speed ceiling
PADDLE_ACCELERATION = 1.05  # horizontal speed multiplier per hit
HIT_FORGIVENESS = 20        # extra vertical reach of a paddle hitbox
SCORE_MARGIN = 20           # how far past a side the ball must travel to score
SUB_STEP = 0.016            # max physics increment (seconds)
MAX_FRAME_TIME = 0.5        # elapsed time cap per frame (seconds)
SERVE_DELAY = 1.0           # respawn grace period after a point

# Loop rates
FRAME_RATE = 60             # render/physics frames per second
SNAPSHOT_RATE = 30          # host STATE broadcasts per second
SNAPSHOT_INTERVAL = 1.0 / SNAPSHOT_RATE
INPUT_INTERVAL = 0.033      # min seconds between INPUT messages

# Reconciliation
SNAP_THRESHOLD = 150.0      # compared as a squared distance (150 ** 2)
BALL_SMOOTHING = 0.1
PADDLE_SMOOTHING = 0.2

# Network defaults
DEFAULT_HOST = '0.0.0.0'
DEFAULT_PORT = 9000
DEFAULT_BUFFER_SIZE = 4096
CONNECT_TIMEOUT = 5.0       # Seconds before an outbound connect is abandoned
