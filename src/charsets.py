"""Glyph gradients for terminal ASCII rendering, ordered from sparse to dense."""

CHAR_SETS = {
    'standard': {
        'chars': " .:-=+*#%@",
        'name': 'Standard ASCII'
    },
    'standard7': {
        'chars': " `.,-:~;+*#%$@",
        'name': 'Extended ASCII'
    },
    'standard_alt': {
        'chars': " .,:ilwW",
        'name': 'Standard ASCII Alternative'
    },
    'fine': {
        'chars': " `^\",:;Il!i~+_-?][}{1)(|\\/tfjrxnuvczXYUJCLQ0OZmwqpdbkhao*#MW&8%B@$",
        'name': 'Fine Detail ASCII'
    },
    'blocks': {
        'chars': " ▏▎▍▌▋▊▉█",
        'name': 'Block Elements'
    },
    'shades': {
        'chars': " ░▒▓█",
        'name': 'Shaded Blocks'
    },
    'shades_mix': {
        'chars': " .░▒▓█",
        'name': 'Mixed Shaded Blocks'
    },
}

DEFAULT_CHAR_SET = 'standard'


def get_gradient(name=DEFAULT_CHAR_SET):
    """Return the glyph string for a named set; unknown names raise KeyError."""
    if name not in CHAR_SETS:
        raise KeyError(f"Unknown character set '{name}' (choose from: {', '.join(CHAR_SETS)})")
    return CHAR_SETS[name]['chars']
