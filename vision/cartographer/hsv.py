"""HSV marker colors with hue rotation.

The trail presenter rotates the hue a few degrees per point so consecutive
markers get distinguishable, cyclically repeating colors.
"""
from dataclasses import dataclass

CW = 'cw'
CCW = 'ccw'


@dataclass
class HSV:
    h: int = 0      # 0 <= h < 360
    s: float = 1.0  # 0 <= s <= 1
    v: float = 1.0  # 0 <= v <= 1

    def rotate_hue(self, degrees: int, direction: str = CW) -> None:
        """Rotate the hue in place by `degrees`, wrapping around 360."""
        if direction == CW:
            self.h = (self.h + degrees) % 360
        elif direction == CCW:
            self.h = (self.h - degrees) % 360
        else:
            raise ValueError(f'unknown direction: {direction!r}')

    def rgba(self) -> tuple[int, int, int, int]:
        """Convert to an opaque (r, g, b, 255) color."""
        c = self.v * self.s
        hp = (self.h % 360) / 60.0
        x = c * (1 - abs(hp % 2 - 1))
        m = self.v - c

        sector = int(hp)
        if sector == 0:
            rp, gp, bp = c, x, 0.0
        elif sector == 1:
            rp, gp, bp = x, c, 0.0
        elif sector == 2:
            rp, gp, bp = 0.0, c, x
        elif sector == 3:
            rp, gp, bp = 0.0, x, c
        elif sector == 4:
            rp, gp, bp = x, 0.0, c
        else:
            rp, gp, bp = c, 0.0, x

        return (int(round((rp + m) * 255)),
                int(round((gp + m) * 255)),
                int(round((bp + m) * 255)),
                255)

    def bgr(self) -> tuple[int, int, int]:
        """Color tuple in OpenCV channel order."""
        r, g, b, _ = self.rgba()
        return b, g, r
