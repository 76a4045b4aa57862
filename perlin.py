#
# Classic gradient (Perlin) noise for 2D and 3D, vectorized with numpy.
#
# Based on Ken Perlin's improved noise reference implementation (2002):
# a 256 entry permutation table (duplicated to 512 to avoid wrapping),
# the 6t^5 - 15t^4 + 10t^3 fade curve and 16 gradient directions picked
# from the low 4 bits of each corner hash.
#
# The permutation table is shuffled from a single seed in [0, 1), so a
# noise field is fully reproducible from that one float.
#
import math
import numpy


def fade(t):
    return t * t * t * (t * (t * 6 - 15) + 10)


def lerp(a, b, t):
    return a + t * (b - a)


def grad(hash, x, y, z):
    h = hash & 15
    u = numpy.where(h < 8, x, y)
    v = numpy.where(h < 4, y, numpy.where((h == 12) | (h == 14), x, z))
    return numpy.where((h & 1) == 0, u, -u) + numpy.where((h & 2) == 0, v, -v)


def permutation_table(seed):
    """Return the 512 entry permutation table for `seed`.

    Every Fisher-Yates step draws j from the same scalar seed, so the shuffle
    is weak; only reproducibility matters here.
    """
    if not (0.0 <= seed < 1.0):
        raise ValueError(f"noise seed must be in [0, 1), got {seed!r}")
    p = list(range(256))
    for i in range(255, 0, -1):
        j = int(math.floor(seed * (i + 1)))
        p[i], p[j] = p[j], p[i]
    return numpy.array(p + p, dtype=numpy.int64)


class PerlinNoise(object):
    """Seeded gradient noise with values in [0, 1], periodic every 256 units on each axis."""
    def __init__(self, seed):
        self.seed = seed
        self.perm = permutation_table(seed)

    def noise(self, x, y, z=0.0):
        """Sample the field at arrays (or scalars) x, y, z; inputs broadcast together."""
        x = numpy.asarray(x, dtype=numpy.float64)
        y = numpy.asarray(y, dtype=numpy.float64)
        z = numpy.asarray(z, dtype=numpy.float64)
        p = self.perm

        # Unit cube containing the point.
        fx = numpy.floor(x)
        fy = numpy.floor(y)
        fz = numpy.floor(z)
        X = fx.astype(numpy.int64) & 255
        Y = fy.astype(numpy.int64) & 255
        Z = fz.astype(numpy.int64) & 255

        # Relative position inside the cube.
        x = x - fx
        y = y - fy
        z = z - fz
        u = fade(x)
        v = fade(y)
        w = fade(z)

        # Hash the 8 cube corners.
        A = p[X] + Y
        AA = p[A] + Z
        AB = p[A + 1] + Z
        B = p[X + 1] + Y
        BA = p[B] + Z
        BB = p[B + 1] + Z

        result = lerp(
            lerp(
                lerp(grad(p[AA], x, y, z), grad(p[BA], x - 1, y, z), u),
                lerp(grad(p[AB], x, y - 1, z), grad(p[BB], x - 1, y - 1, z), u),
                v,
            ),
            lerp(
                lerp(grad(p[AA + 1], x, y, z - 1), grad(p[BA + 1], x - 1, y, z - 1), u),
                lerp(grad(p[AB + 1], x, y - 1, z - 1), grad(p[BB + 1], x - 1, y - 1, z - 1), u),
                v,
            ),
            w,
        )
        return result * 0.5 + 0.5

    def __call__(self, x, y, z=0.0):
        return float(self.noise(x, y, z))


def make_noise(seed):
    """Return a sampler (x, y, z=0) -> float in [0, 1] for `seed` in [0, 1)."""
    return PerlinNoise(seed)
