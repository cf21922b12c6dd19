import math
import os
import re
from typing import Iterable, List, Tuple


WHITE = (255, 255, 255)
HEX_COLOR_RE = re.compile(r'^#([0-9a-fA-F]{2})([0-9a-fA-F]{2})([0-9a-fA-F]{2})$')
OUTPUT_SUFFIX = "-watermark"


def parse_color(color: str) -> Tuple[int, int, int]:
    """Parse #RRGGBB into an RGB tuple; anything else is white"""
    if not isinstance(color, str):
        return WHITE

    match = HEX_COLOR_RE.match(color.strip())
    if not match:
        return WHITE

    return tuple(int(channel, 16) for channel in match.groups())


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positive values"""
    return int(math.floor(value + 0.5))


def output_path_for(source_path: str) -> str:
    """Sibling output path: <stem>-watermark<ext>"""
    directory = os.path.dirname(source_path)
    stem, ext = os.path.splitext(os.path.basename(source_path))
    return os.path.join(directory, f"{stem}{OUTPUT_SUFFIX}{ext}")


def is_video_file(path: str, extensions: Iterable[str]) -> bool:
    """Check the extension against the accepted container list"""
    ext = os.path.splitext(path)[1].lstrip(".").lower()
    return ext in {e.lower() for e in extensions}


def find_video_files(paths: Iterable[str], extensions: Iterable[str]) -> List[str]:
    """Expand directories to their video files, keeping explicit files as given"""
    extensions = list(extensions)
    files = []

    for path in paths:
        if os.path.isdir(path):
            for name in sorted(os.listdir(path)):
                candidate = os.path.join(path, name)
                # Skip our own outputs so re-running a folder does not stack watermarks
                stem = os.path.splitext(name)[0]
                if stem.endswith(OUTPUT_SUFFIX):
                    continue
                if os.path.isfile(candidate) and is_video_file(candidate, extensions):
                    files.append(candidate)
        else:
            files.append(path)

    return files
