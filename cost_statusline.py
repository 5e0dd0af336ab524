#!/usr/bin/env python3
"""Claude Code Cost Statusline — one line with a braille cost chart.

Output: model (colored by family), time since first prompt today, current
session duration, hourly cost chart (5-hour braille blocks), today's cost.

  Sonnet 4.5 3:12 1:05 ⣠⣴⡇ ⢀ $4.27

Sessions: the transcript is split wherever two messages are more than 5h
apart; the last run is the current session.
Chart:    cumulative daily cost sampled once per hour, see braille_chart.py.

Config:   ~/.claude/statusline.toml (optional)
State:    ~/.claude/statusline-state.json
Log:      /tmp/claude-statusline/statusline.log
"""

import sys, json, logging, re, time
from datetime import datetime, timezone, timedelta
from pathlib import Path

from braille_chart import multi_block_chart

# ═══════════════════════ CONFIG ═══════════════════════

STATE_PATH = Path("~/.claude/statusline-state.json").expanduser()
LOG_DIR = Path("/tmp/claude-statusline")
LOG_LEVEL = "WARNING"
SESSION_GAP_MS = 5 * 60 * 60 * 1000   # Claude Code usage window
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

log = logging.getLogger("cost_statusline")

# ═══════════════════════ TOML CONFIG ═══════════════════════

def load_config(cfg_path=None):
    """Load optional TOML config, override defaults. Requires tomllib (3.11+) or tomli."""
    global STATE_PATH, LOG_DIR, LOG_LEVEL

    cfg_path = Path(cfg_path or "~/.claude/statusline.toml").expanduser()
    if not cfg_path.exists():
        return

    try:
        try:
            import tomllib
        except ImportError:
            import tomli as tomllib  # type: ignore
        with open(cfg_path, "rb") as f:
            cfg = tomllib.load(f)
    except (OSError, ValueError) as e:
        log.warning("ignoring config %s: %s", cfg_path, e)
        return

    s = cfg.get("state", {})
    if "path" in s:
        STATE_PATH = Path(s["path"]).expanduser()

    lg = cfg.get("log", {})
    LOG_LEVEL = str(lg.get("level", LOG_LEVEL)).upper()
    if "dir" in lg:
        LOG_DIR = Path(lg["dir"]).expanduser()

load_config()

# ═══════════════════════ LOGGING ═══════════════════════

def setup_logging():
    """File logging only: stdout is the statusline itself."""
    if log.handlers:
        return
    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(LOG_DIR / "statusline.log", delay=True)
    except OSError:
        handler = logging.NullHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
    log.addHandler(handler)
    log.setLevel(getattr(logging, LOG_LEVEL, logging.WARNING))

# ═══════════════════════ ANSI ═══════════════════════

R  = "\033[0m"                # Reset
BG = "\033[92m"               # Bright green
RD = "\033[38;2;255;0;0m"     # Bright red (truecolor)
CY = "\033[36m"               # Cyan

def color_for_model(name):
    """Sonnet green, Opus red, Haiku cyan, others plain."""
    n = name.lower()
    if "sonnet" in n: return BG
    if "opus" in n: return RD
    if "haiku" in n: return CY
    return R

def fmt_model(name):
    return f"{color_for_model(name)}{name}{R}"

# ═══════════════════════ HELPERS ═══════════════════════

def parse_num(x):
    """Number or numeric string → float; anything else → 0.0."""
    if isinstance(x, bool):
        return 0.0
    if isinstance(x, (int, float)):
        return float(x)
    if isinstance(x, str) and re.fullmatch(r"\d*\.?\d*", x):
        try:
            return float(x)
        except ValueError:  # "" or "."
            return 0.0
    return 0.0

def extract_model_name(data):
    m = data.get("model") or {}
    return m.get("display_name") or m.get("id") or "unknown"

def extract_cost(data):
    return parse_num((data.get("cost") or {}).get("total_cost_usd", 0.0))

def fmt_cost(cost):
    return f"${cost:.2f}"

def parse_iso_ms(s):
    """ISO 8601 → epoch millis (UTC). Handles Z, +00:00, fractional sec. None if invalid."""
    if not s or not isinstance(s, str):
        return None
    try:
        dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError:
        # Older Python rejects odd fraction widths; keep whole seconds
        s2 = s.split(".")[0].rstrip("Z")
        try:
            dt = datetime.strptime(s2, "%Y-%m-%dT%H:%M:%S")
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return (dt - EPOCH) // timedelta(milliseconds=1)

def local_dt(ms):
    return datetime.fromtimestamp(ms / 1000)

def local_hour(ms):
    return local_dt(ms).hour

def same_day(ts1, ts2):
    """Both timestamps on the same local calendar day."""
    return local_dt(ts1).date() == local_dt(ts2).date()

def fmt_duration(ms):
    """Format duration: 2:14, 0:05 or <1m."""
    m = max(0, int(ms)) // 60_000
    h, m = divmod(m, 60)
    if h:
        return f"{h}:{m:02d}"
    if m:
        return f"0:{m:02d}"
    return "<1m"

def elapsed(start_ms, now_ms):
    """Formatted time since start_ms, or None if unknown / not in the past."""
    if start_ms is None or now_ms - start_ms <= 0:
        return None
    return fmt_duration(now_ms - start_ms)

# ═══════════════════════ SESSIONS ═══════════════════════

def find_session_start(timestamps):
    """Start of the most recent session in ascending epoch-ms timestamps.

    A gap strictly greater than SESSION_GAP_MS opens a new session.
    Returns None for no timestamps.
    """
    ts = list(timestamps)
    if not ts:
        return None
    start = prev = ts[0]
    for t in ts[1:]:
        if t - prev > SESSION_GAP_MS:
            start = t
        prev = t
    return start

# ═══════════════════════ TRANSCRIPT ═══════════════════════

def parse_transcript_line(line):
    """JSONL line → entry dict with `_ts` (epoch ms), or None.

    Only user/assistant messages with a parseable timestamp are kept.
    """
    try:
        e = json.loads(line)
    except ValueError:
        return None
    if not isinstance(e, dict) or e.get("type") not in ("user", "assistant"):
        return None
    ts = parse_iso_ms(e.get("timestamp"))
    if ts is None:
        return None
    e["_ts"] = ts
    return e

def read_transcript(path):
    """Parsed transcript entries sorted by time. [] if missing or unreadable."""
    if not path:
        return []
    p = Path(path).expanduser()
    if not p.exists():
        return []
    try:
        with open(p, encoding="utf-8", errors="replace") as f:
            entries = [e for e in map(parse_transcript_line, f) if e]
    except OSError as e:
        log.warning("cannot read transcript %s: %s", p, e)
        return []
    entries.sort(key=lambda e: e["_ts"])
    return entries

def session_start(entries):
    return find_session_start(e["_ts"] for e in entries)

def first_prompt_today(entries, now_ms):
    """Earliest user message on the local day of now_ms."""
    for e in entries:
        if e.get("type") == "user" and same_day(e["_ts"], now_ms):
            return e["_ts"]
    return None

# ═══════════════════════ STATE ═══════════════════════

def load_state(path=None):
    """Read state JSON. Missing or corrupt file → {}."""
    path = path or STATE_PATH
    if not path.exists():
        return {}
    try:
        state = json.loads(path.read_text())
    except (OSError, ValueError) as e:
        log.warning("could not read state file %s: %s", path, e)
        return {}
    if not isinstance(state, dict):
        log.warning("state file %s is not an object, ignoring", path)
        return {}

    # JSON object keys are strings; hours are ints
    hc = state.get("hourly_costs")
    if isinstance(hc, dict) and isinstance(hc.get("buckets"), dict):
        try:
            hc["buckets"] = {int(h): parse_num(c) for h, c in hc["buckets"].items()}
        except ValueError:
            log.warning("dropping malformed hourly buckets in %s", path)
            hc["buckets"] = {}
    return state

def save_state(state, path=None):
    """Atomic write via .tmp + rename. Failures are logged, not raised."""
    path = path or STATE_PATH
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(state, separators=(",", ":")))
        tmp.rename(path)
        log.debug("state saved to %s", path)
    except OSError as e:
        log.warning("could not save state file %s: %s", path, e)

# ═══════════════════════ COST TRACKING ═══════════════════════

def update_daily_cost(state, date, cost):
    """Track cumulative cost; the first value seen each day becomes the baseline."""
    daily = state.get("daily_costs") or {}
    if daily.get("date") != date or daily.get("baseline") is None:
        baseline = cost
    else:
        baseline = daily["baseline"]
    return {**state, "daily_costs": {"date": date, "baseline": baseline},
            "current_total_cost": cost}

def todays_cost(state):
    baseline = (state.get("daily_costs") or {}).get("baseline", 0.0)
    return max(0.0, state.get("current_total_cost", 0.0) - baseline)

def should_update_chart(state, date, hour):
    """New day or new hour since the last recorded bucket."""
    stored = (state.get("hourly_costs") or {}).get("date")
    return stored != date or state.get("last_recorded_hour") != hour

def update_hourly_chart(state, date, hour, cost):
    """Record today's cost so far in the bucket for `hour`. Buckets reset daily."""
    hc = state.get("hourly_costs") or {}
    buckets = {} if hc.get("date") != date else dict(hc.get("buckets") or {})
    buckets[hour] = cost
    return {**state, "hourly_costs": {"date": date, "buckets": buckets},
            "last_recorded_hour": hour}

def update_daily_first_prompt(state, entries, now_ms):
    """Keep today's first prompt time in state. Returns (first_ms, state, dirty)."""
    stored = state.get("today_first_prompt_ms")
    first = stored if stored and same_day(stored, now_ms) else None
    if first is None:
        first = first_prompt_today(entries, now_ms)
    if first is not None and first != stored:
        return first, {**state, "today_first_prompt_ms": first}, True
    return first, state, False

# ═══════════════════════ LINE BUILDER ═══════════════════════

def build_line(data, state, now_ms=None):
    """Statusline for `data`. Returns (line, new_state, dirty)."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)

    name = extract_model_name(data)
    cost = extract_cost(data)

    entries = read_transcript(data.get("transcript_path"))
    ses_start = session_start(entries)
    ses_dur = elapsed(ses_start, now_ms)
    log.debug("session start %s (%d entries)", ses_start, len(entries))

    first, state, dirty = update_daily_first_prompt(state, entries, now_ms)
    day_dur = elapsed(first, now_ms)

    now = local_dt(now_ms)
    date, hour = now.strftime("%Y-%m-%d"), now.hour
    state = update_daily_cost(state, date, cost)
    today = todays_cost(state)
    if should_update_chart(state, date, hour):
        state = update_hourly_chart(state, date, hour, today)
        dirty = True

    chart = ""
    buckets = (state.get("hourly_costs") or {}).get("buckets") or {}
    if first is not None and buckets:
        anchor = local_hour(first)
        log.debug("chart anchor hour %d, %d buckets", anchor, len(buckets))
        chart = multi_block_chart(buckets, anchor)

    parts = [fmt_model(name)]
    for p in (day_dur, ses_dur, chart):
        if p:
            parts.append(p)
    parts.append(fmt_cost(today))
    if not (day_dur or ses_dur or chart) and data.get("exceeds_200k_tokens"):
        parts.append("[>200k tokens]")

    return " ".join(parts), state, dirty

# ═══════════════════════ MAIN ═══════════════════════

def main():
    setup_logging()

    try:
        data = json.load(sys.stdin)
    except (json.JSONDecodeError, ValueError):
        return
    if not isinstance(data, dict):
        return

    try:
        line, state, dirty = build_line(data, load_state())
        if dirty:
            save_state(state)
    except Exception as e:
        log.exception("statusline failed")
        line = f"Claude Code [Error: {str(e) or type(e).__name__}]"

    print(line)

if __name__ == "__main__":
    main()
