"""
Analysis and visualization of session metrics.
Generates plots for reconciliation corrections, snapshot arrival jitter,
bandwidth and frame step times.
"""

import json
import os

import matplotlib.pyplot as plt
import numpy as np

KIND_COLORS = {'blend': '#4CAF50', 'snap': '#FF5722', 'frozen': '#2196F3'}


def load_metrics(filepath: str) -> dict:
    """Load a metrics JSON file."""
    with open(filepath) as f:
        return json.load(f)


def plot_corrections(data: dict, output_dir: str = 'analysis'):
    """Plot reconciliation corrections over time and their distribution."""
    corrections = data.get('corrections', [])
    if not corrections:
        print("[ANALYSIS] No correction data.")
        return None

    os.makedirs(output_dir, exist_ok=True)
    fig, axes = plt.subplots(1, 2, figsize=(12, 5))
    fig.suptitle('Client Reconciliation', fontsize=13, fontweight='bold')

    # ── 1. Error over time, coloured by correction kind ──
    ax = axes[0]
    for kind, color in KIND_COLORS.items():
        points = [c for c in corrections if c['kind'] == kind]
        if points:
            ax.scatter([c['t'] for c in points], [c['error_px'] for c in points],
                       s=6, color=color, label=f'{kind} ({len(points)})')
    ax.set_title('Ball Correction Distance')
    ax.set_xlabel('Time (s)')
    ax.set_ylabel('Distance before correction (px)')
    ax.legend(fontsize=9)
    ax.grid(True, alpha=0.3)

    # ── 2. CDF of blend distances ──
    ax = axes[1]
    blends = np.sort([c['error_px'] for c in corrections if c['kind'] == 'blend'])
    if len(blends):
        cdf = np.arange(1, len(blends) + 1) / len(blends)
        ax.plot(blends, cdf * 100, linewidth=1.5, color=KIND_COLORS['blend'])
        ax.axvline(x=np.percentile(blends, 95), color='red', linestyle='--',
                   linewidth=1, label=f'P95: {np.percentile(blends, 95):.1f} px')
        ax.legend(fontsize=9)
    ax.set_title('Blend Distance CDF')
    ax.set_xlabel('Distance (px)')
    ax.set_ylabel('Percentile (%)')
    ax.grid(True, alpha=0.3)

    plt.tight_layout()
    path = os.path.join(output_dir, 'correction_analysis.png')
    plt.savefig(path, dpi=150)
    print(f"[ANALYSIS] Saved: {path}")
    plt.close()
    return path


def plot_snapshot_intervals(data: dict, output_dir: str = 'analysis'):
    """Plot snapshot inter-arrival times and smoothed jitter."""
    intervals = data.get('snapshot_intervals', [])
    if not intervals:
        return None

    os.makedirs(output_dir, exist_ok=True)
    fig, axes = plt.subplots(1, 2, figsize=(12, 4))

    times = [s['t'] for s in intervals]
    values = [s['interval_ms'] for s in intervals]
    axes[0].plot(times, values, linewidth=0.6, color='#2196F3',
                 label='Interval')
    axes[0].plot(times, [s['jitter_ms'] for s in intervals], linewidth=1.5,
                 color='red', label='Smoothed jitter (RFC 3550)')
    axes[0].set_title('Snapshot Arrival')
    axes[0].set_xlabel('Time (s)')
    axes[0].set_ylabel('ms')
    axes[0].legend(fontsize=9)
    axes[0].grid(True, alpha=0.3)

    arr = np.array(values)
    axes[1].hist(arr, bins=50, edgecolor='black', alpha=0.7, color='#4CAF50')
    stats_text = (f'Mean: {np.mean(arr):.1f} ms\n'
                  f'Std:  {np.std(arr):.1f} ms\n'
                  f'P95:  {np.percentile(arr, 95):.1f} ms')
    axes[1].text(0.95, 0.95, stats_text, transform=axes[1].transAxes,
                 verticalalignment='top', horizontalalignment='right',
                 fontsize=9, family='monospace',
                 bbox=dict(boxstyle='round', facecolor='wheat', alpha=0.8))
    axes[1].set_title('Interval Distribution')
    axes[1].set_xlabel('Interval (ms)')
    axes[1].set_ylabel('Frequency')
    axes[1].grid(True, alpha=0.3)

    plt.tight_layout()
    path = os.path.join(output_dir, 'snapshot_interval_analysis.png')
    plt.savefig(path, dpi=150)
    print(f"[ANALYSIS] Saved: {path}")
    plt.close()
    return path


def plot_bandwidth(data: dict, output_dir: str = 'analysis'):
    """Plot bandwidth usage over time."""
    bw = data.get('bandwidth', [])
    if not bw:
        return None

    os.makedirs(output_dir, exist_ok=True)
    fig, ax = plt.subplots(figsize=(10, 4))
    times = [b['t'] for b in bw]
    sent = [b['sent_bytes'] / 1024 for b in bw]
    recv = [b['recv_bytes'] / 1024 for b in bw]
    ax.plot(times, sent, label='Sent (KB/s)', color='#2196F3')
    ax.plot(times, recv, label='Received (KB/s)', color='#4CAF50')
    ax.set_title('Bandwidth Usage')
    ax.set_xlabel('Time (s)')
    ax.set_ylabel('KB/s')
    ax.legend()
    ax.grid(True, alpha=0.3)

    plt.tight_layout()
    path = os.path.join(output_dir, 'bandwidth_analysis.png')
    plt.savefig(path, dpi=150)
    print(f"[ANALYSIS] Saved: {path}")
    plt.close()
    return path


def plot_frame_times(data: dict, output_dir: str = 'analysis'):
    """Plot physics step time per frame."""
    frames = data.get('frame_times', [])
    if not frames:
        return None

    os.makedirs(output_dir, exist_ok=True)
    fig, ax = plt.subplots(figsize=(10, 4))
    frame_nums = [f['frame'] for f in frames]
    durations = [f['duration_ms'] for f in frames]
    ax.plot(frame_nums, durations, linewidth=0.5, color='#FF5722')
    mean_d = np.mean(durations)
    ax.axhline(y=mean_d, color='blue', linestyle='--',
               label=f'Mean: {mean_d:.3f} ms')
    ax.set_title('Physics Step Time per Frame')
    ax.set_xlabel('Frame')
    ax.set_ylabel('Duration (ms)')
    ax.legend()
    ax.grid(True, alpha=0.3)

    plt.tight_layout()
    path = os.path.join(output_dir, 'frame_time_analysis.png')
    plt.savefig(path, dpi=150)
    print(f"[ANALYSIS] Saved: {path}")
    plt.close()
    return path


def analyze_all(filepath: str, output_dir: str = 'analysis'):
    """Run all analysis on a metrics file."""
    print(f"[ANALYSIS] Loading {filepath}...")
    data = load_metrics(filepath)

    plot_corrections(data, output_dir)
    plot_snapshot_intervals(data, output_dir)
    plot_bandwidth(data, output_dir)
    plot_frame_times(data, output_dir)

    print("\n=== Metrics Summary ===")
    corrections = data.get('corrections', [])
    if corrections:
        kinds = {k: sum(1 for c in corrections if c['kind'] == k)
                 for k in KIND_COLORS}
        errors = np.array([c['error_px'] for c in corrections])
        print(f"  Corrections: {kinds}, "
              f"mean={np.mean(errors):.1f} px, "
              f"P95={np.percentile(errors, 95):.1f} px")

    intervals = [s['interval_ms'] for s in data.get('snapshot_intervals', [])]
    if intervals:
        print(f"  Snapshots:   mean={np.mean(intervals):.1f} ms, "
              f"std={np.std(intervals):.1f} ms")

    frames = [f['duration_ms'] for f in data.get('frame_times', [])]
    if frames:
        print(f"  Frame Time:  mean={np.mean(frames):.3f} ms, "
              f"max={np.max(frames):.3f} ms")

    inputs = data.get('inputs_sent', [])
    if inputs:
        print(f"  Inputs sent: {len(inputs)}")


if __name__ == '__main__':
    import argparse
    parser = argparse.ArgumentParser(description='Analyze session metrics')
    parser.add_argument('file', help='Metrics JSON file to analyze')
    parser.add_argument('--output', default='analysis', help='Output directory')
    args = parser.parse_args()
    analyze_all(args.file, args.output)
