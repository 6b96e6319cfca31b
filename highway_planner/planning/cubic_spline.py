"""Natural cubic spline interpolation.

Based on the implementation from PythonRobotics:
https://github.com/AtsushiSakai/PythonRobotics
"""

import numpy as np
from typing import Sequence, Union


class CubicSpline1D:
    """1D natural cubic spline through a set of points.

    On each interval ``[x_i, x_{i+1}]`` the curve is
    ``a_i + b_i*dx + c_i*dx^2 + d_i*dx^3`` with ``dx = x - x_i``; the second
    derivative vanishes at both ends.

    Args:
        x: x coordinates, strictly increasing
        y: y coordinates
    """

    def __init__(self, x: Sequence[float], y: Sequence[float]):
        x = np.asarray(x, dtype=float)
        y = np.asarray(y, dtype=float)
        if x.ndim != 1 or x.shape != y.shape:
            raise ValueError(f"x and y must be 1D with equal length, got {x.shape} and {y.shape}")
        if len(x) < 2:
            raise ValueError(f"At least 2 points are required, got {len(x)}")

        h = np.diff(x)
        if np.any(h <= 0):
            raise ValueError("x coordinates must be strictly increasing")

        self.x = x
        self.nx = len(x)
        self.a = y.copy()

        # Second-order coefficients from the tridiagonal continuity system
        self.c = np.linalg.solve(self._calc_A(h), self._calc_B(h, y))

        self.b = (self.a[1:] - self.a[:-1]) / h - h / 3.0 * (2.0 * self.c[:-1] + self.c[1:])
        self.d = (self.c[1:] - self.c[:-1]) / (3.0 * h)

    def __call__(self, x):
        return self.calc_position(x)

    def calc_position(self, x: Union[float, np.ndarray]) -> Union[float, np.ndarray, None]:
        """Evaluate the spline.

        Args:
            x: Query position(s)

        Returns:
            Value(s) at x. None for a scalar outside the fitted range,
            NaN entries for array queries outside it.
        """
        return self._evaluate(x, lambda i, dx: (
            self.a[i] + self.b[i] * dx + self.c[i] * dx ** 2 + self.d[i] * dx ** 3
        ))

    def calc_first_derivative(self, x: Union[float, np.ndarray]) -> Union[float, np.ndarray, None]:
        """Evaluate dy/dx, same range rules as ``calc_position``."""
        return self._evaluate(x, lambda i, dx: (
            self.b[i] + 2.0 * self.c[i] * dx + 3.0 * self.d[i] * dx ** 2
        ))

    def _evaluate(self, x, poly):
        if np.isscalar(x):
            if x < self.x[0] or x > self.x[-1]:
                return None
            i = self._search_index(np.asarray([x]))[0]
            return float(poly(i, x - self.x[i]))

        x = np.asarray(x, dtype=float)
        res = np.full_like(x, np.nan)
        mask = (x >= self.x[0]) & (x <= self.x[-1])
        if np.any(mask):
            i = self._search_index(x[mask])
            res[mask] = poly(i, x[mask] - self.x[i])
        return res

    def _search_index(self, x: np.ndarray) -> np.ndarray:
        """Interval index for each query."""
        idx = np.searchsorted(self.x, x, side='right') - 1
        return np.clip(idx, 0, self.nx - 2)

    def _calc_A(self, h: np.ndarray) -> np.ndarray:
        """Matrix of the system for coefficient c."""
        A = np.zeros((self.nx, self.nx))
        A[0, 0] = 1.0
        A[-1, -1] = 1.0
        for i in range(1, self.nx - 1):
            A[i, i - 1] = h[i - 1]
            A[i, i] = 2.0 * (h[i - 1] + h[i])
            A[i, i + 1] = h[i]
        return A

    def _calc_B(self, h: np.ndarray, a: np.ndarray) -> np.ndarray:
        """Right-hand side of the system for coefficient c."""
        B = np.zeros(self.nx)
        B[1:-1] = 3.0 * (a[2:] - a[1:-1]) / h[1:] - 3.0 * (a[1:-1] - a[:-2]) / h[:-1]
        return B
