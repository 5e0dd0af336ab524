"""Colored braille cost charts, btop style.

Hourly costs are cut into 5-hour blocks starting at the first prompt hour.
Each block is scaled on its own min/max and drawn as braille glyphs, two
hours per glyph, colored green → yellow → red by the higher of the pair.

Braille cell (dot numbers, bits):   1 0x01   4 0x08
                                    2 0x02   5 0x10
                                    3 0x04   6 0x20
                                    7 0x40   8 0x80
"""

BRAILLE_BASE = 0x2800
BLOCK_HOURS = 5
RANGE_FLOOR = 1e-12
EMPTY_BLOCK = "⠀" * 3   # Blank braille, not ASCII space

# Bottom-up dots per column
LEFT_DOTS = (0x40, 0x04, 0x02, 0x01)    # dots 7, 3, 2, 1
RIGHT_DOTS = (0x80, 0x20, 0x10, 0x08)   # dots 8, 6, 5, 4

R = "\033[0m"

# ═══════════════════════ MAPPERS ═══════════════════════

def clamp01(t):
    return max(0.0, min(1.0, float(t)))

def gradient(t):
    """Green (0) → yellow (0.5) → red (1) as an (r, g, b) triple."""
    t = clamp01(t)
    if t <= 0.5:
        return (round(255 * 2 * t), 255, 0)
    u = 2 * (t - 0.5)
    return (255, round(255 * (1 - u)), 0)

def row_level(t):
    """Bar height 0..3 for a normalized sample."""
    return max(0, min(3, round(3 * clamp01(t))))

def glyph(left, right):
    """Braille char with `left`/`right` dots filled from the bottom."""
    mask = 0
    for bit in LEFT_DOTS[:left]:
        mask |= bit
    for bit in RIGHT_DOTS[:right]:
        mask |= bit
    return chr(BRAILLE_BASE | mask)

def truecolor(rgb, txt):
    r, g, b = rgb
    return f"\033[38;2;{r};{g};{b}m{txt}{R}"

# ═══════════════════════ BLOCKS ═══════════════════════

def _window(hourly_costs, start):
    return [float(hourly_costs.get(h, 0.0)) for h in range(start, start + BLOCK_HOURS)]

def segment_blocks(hourly_costs, anchor):
    """Split {hour: cost} into 5-hour blocks from `anchor` up to the last hour with data.

    Hours are plain increasing ints (not wrapped at 24); missing hours are 0.0.
    """
    if not hourly_costs:
        return []
    last = max(hourly_costs)
    blocks = []
    cur = anchor
    while any(h <= last for h in range(cur, cur + BLOCK_HOURS)):
        blocks.append(_window(hourly_costs, cur))
        cur += BLOCK_HOURS

    # One more window if it still holds data past the last full one
    tail = _window(hourly_costs, cur)
    if any(v > 0 for v in tail):
        blocks.append(tail)
    return blocks

def render_block(block):
    """One block → colored glyphs. Trailing zeros (future/idle hours) are not drawn."""
    last = max((i for i, v in enumerate(block) if v > 0), default=-1)
    if last < 0:
        return EMPTY_BLOCK

    samples = block[:last + 1]
    lo, hi = min(samples), max(samples)
    rng = max(hi - lo, RANGE_FLOOR)
    norm = [(v - lo) / rng for v in samples]

    out = []
    for i in range(0, len(norm), 2):
        xl = norm[i]
        xr = norm[min(i + 1, len(norm) - 1)]   # odd tail: last sample fills both columns
        ch = glyph(row_level(xl), row_level(xr))
        out.append(truecolor(gradient(max(xl, xr)), ch))
    return "".join(out)

# ═══════════════════════ CHART ═══════════════════════

def join_blocks(rendered):
    return " ".join(rendered)

def multi_block_chart(hourly_costs, anchor):
    """Full chart: per-block normalized braille segments separated by spaces."""
    return join_blocks([render_block(b) for b in segment_blocks(hourly_costs, anchor)])
