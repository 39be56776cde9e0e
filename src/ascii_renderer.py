import numpy as np

from charsets import DEFAULT_CHAR_SET, get_gradient

# Rec. 601 luma weights scaled to integers so that pure white sums to
# exactly LUMA_SCALE and pure black to 0.
LUMA_WEIGHTS = np.array([299, 587, 114], dtype=np.int64)
LUMA_SCALE = 255 * 1000

RESET = "\033[0m"


def fg_color(r, g, b):
    return f"\033[38;2;{r};{g};{b}m"


def _weighted(pixels):
    return np.asarray(pixels, dtype=np.int64) @ LUMA_WEIGHTS


def luminance(pixels):
    """Perceptual brightness in [0, 1] for an (..., 3) array of RGB values."""
    return _weighted(pixels) / LUMA_SCALE


def glyph_indices(pixels, n):
    # floor(L * (n - 1)) in integer arithmetic; L == 1.0 lands on n - 1
    indices = _weighted(pixels) * (n - 1) // LUMA_SCALE
    return np.clip(indices, 0, n - 1)


def render_frame(grid, gradient):
    """Render an (height, width, 3) uint8 grid as colour-annotated text.

    Each pixel becomes a 24-bit foreground escape plus a glyph picked by
    its luminance; each row ends with an attribute reset and a newline.
    """
    if len(gradient) < 2:
        raise ValueError("gradient needs at least two glyphs")
    indices = glyph_indices(grid, len(gradient))
    lines = []
    for row, row_indices in zip(grid.tolist(), indices.tolist()):
        cells = [fg_color(r, g, b) + gradient[i] for (r, g, b), i in zip(row, row_indices)]
        cells.append(RESET + "\n")
        lines.append("".join(cells))
    return "".join(lines)


class AsciiRenderer:
    def __init__(self, gradient=None):
        self.gradient = gradient if gradient is not None else get_gradient(DEFAULT_CHAR_SET)
        if len(self.gradient) < 2:
            raise ValueError("gradient needs at least two glyphs")

    def render(self, grid):
        return render_frame(grid, self.gradient)
