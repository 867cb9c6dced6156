"""
Metrics logging for performance analysis.
Logs reconciliation corrections, snapshot arrival jitter, bandwidth,
frame step times and input sends.
"""

import json
import os
import time

from common.config import SNAPSHOT_INTERVAL


class MetricsLogger:
    """Collects and persists network/game performance metrics."""

    def __init__(self, log_dir: str = 'analysis/logs', clock=time.time):
        self.log_dir = log_dir
        self.clock = clock
        self.start_time = clock()
        self.data = {
            'corrections': [],
            'snapshot_intervals': [],
            'bandwidth': [],
            'frame_times': [],
            'inputs_sent': [],
        }
        # Running jitter of snapshot arrivals (RFC 3550 smoothing)
        self._prev_arrival = None
        self._smoothed_jitter = 0.0

    def _t(self) -> float:
        return round(self.clock() - self.start_time, 4)

    def log_correction(self, kind: str, error_px: float):
        """Log one reconciliation: 'frozen', 'snap' or 'blend'."""
        self.data['corrections'].append({
            't': self._t(), 'kind': kind, 'error_px': round(error_px, 3)
        })

    def log_snapshot_arrival(self, now: float):
        """Log the gap since the previous snapshot arrived (seconds in, ms out)."""
        if self._prev_arrival is not None:
            interval_ms = (now - self._prev_arrival) * 1000.0
            deviation = abs(interval_ms - SNAPSHOT_INTERVAL * 1000.0)
            self._smoothed_jitter += (deviation - self._smoothed_jitter) / 16.0
            self.data['snapshot_intervals'].append({
                't': self._t(),
                'interval_ms': round(interval_ms, 3),
                'jitter_ms': round(self._smoothed_jitter, 3),
            })
        self._prev_arrival = now

    def log_bandwidth(self, bytes_sent: int, bytes_recv: int):
        self.data['bandwidth'].append({
            't': self._t(),
            'sent_bytes': bytes_sent,
            'recv_bytes': bytes_recv
        })

    def log_frame_time(self, frame: int, steps: int, duration_ms: float):
        self.data['frame_times'].append({
            'frame': frame, 'steps': steps,
            'duration_ms': round(duration_ms, 4)
        })

    def log_input_sent(self, y: float):
        self.data['inputs_sent'].append({'t': self._t(), 'y': round(y, 2)})

    def save(self, filename: str = 'metrics.json') -> str:
        os.makedirs(self.log_dir, exist_ok=True)
        path = os.path.join(self.log_dir, filename)
        with open(path, 'w') as f:
            json.dump(self.data, f, indent=2)
        print(f"[METRICS] Saved to {path}", flush=True)
        return path

    def get_summary(self) -> dict:
        """Compute summary statistics."""
        summary = {}
        corrections = self.data['corrections']
        if corrections:
            for kind in ('frozen', 'snap', 'blend'):
                summary[f'corrections_{kind}'] = sum(
                    1 for c in corrections if c['kind'] == kind)
            errors = sorted(c['error_px'] for c in corrections)
            summary['correction_error_mean'] = sum(errors) / len(errors)
            summary['correction_error_p95'] = errors[int(len(errors) * 0.95)]
            summary['correction_error_max'] = errors[-1]

        intervals = [s['interval_ms'] for s in self.data['snapshot_intervals']]
        if intervals:
            summary['snapshot_interval_mean'] = sum(intervals) / len(intervals)
            summary['snapshot_interval_max'] = max(intervals)
            summary['snapshot_jitter_last'] = \
                self.data['snapshot_intervals'][-1]['jitter_ms']

        frames = [f['duration_ms'] for f in self.data['frame_times']]
        if frames:
            summary['frame_time_mean'] = sum(frames) / len(frames)
            summary['frame_time_max'] = max(frames)

        if self.data['inputs_sent']:
            summary['inputs_sent'] = len(self.data['inputs_sent'])

        return summary
