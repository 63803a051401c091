"""
Low-rank Gaussian-process smoothing basis for a single covariate.

The smooth is f(x) = b0 * u + sum_j beta_j * z_j(u), where u is the
standardized covariate and z_j are the leading eigen-directions of a Matern
covariance evaluated at the knots (Kammann & Wand, 2003). The linear column
is the penalty null space; the covariance directions carry the wiggliness
penalty, rescaled so that it is the identity on their coefficients. Columns
are centred so that sum_i f(x_i) = 0 over the fitting data.
"""

import numpy as np
from typing import Optional, Tuple


def matern_covariance(d: np.ndarray, rho: float, kappa: float = 1.5) -> np.ndarray:
    """Matern correlation at distances d with range rho (kappa in 0.5, 1.5, 2.5)."""
    r = np.abs(d) / rho
    if kappa == 0.5:
        return np.exp(-r)
    if kappa == 1.5:
        return (1.0 + r) * np.exp(-r)
    if kappa == 2.5:
        return (1.0 + r + r ** 2 / 3.0) * np.exp(-r)
    raise ValueError(f"Unsupported Matern kappa={kappa}; use 0.5, 1.5 or 2.5")


class GPBasis:
    """
    Gaussian-process basis of dimension k (k - 1 coefficients after centring).

    Args:
        k: basis dimension, including the constant absorbed by centring
        kappa: Matern smoothness
        rho: range parameter in standardized units (None = max knot distance)
        max_knots: subsample unique covariate values above this count
        seed: seed for the knot subsample
        block_elems: rows x knots evaluated per block when building the matrix
    """

    def __init__(self, k: int = 20, kappa: float = 1.5,
                 rho: Optional[float] = None, max_knots: int = 2000, seed: int = 1,
                 block_elems: int = 2_000_000):
        if k < 4:
            raise ValueError(f"Basis dimension k={k} too small; need k >= 4")
        self.k = k
        self.kappa = kappa
        self.rho = rho
        self.max_knots = max_knots
        self.seed = seed
        self.block_elems = block_elems

    @property
    def n_coef(self) -> int:
        return self.k - 1

    def fit(self, x: np.ndarray) -> 'GPBasis':
        x = np.asarray(x, dtype=float).ravel()
        self.x_center = float(np.mean(x))
        self.x_scale = float(np.std(x))
        if not np.isfinite(self.x_scale) or self.x_scale == 0.0:
            raise ValueError("Covariate is constant; a smooth cannot be fitted")

        u = self._standardize(x)
        knots = np.unique(u)
        if len(knots) > self.max_knots:
            rng = np.random.default_rng(self.seed)
            knots = np.sort(rng.choice(knots, size=self.max_knots, replace=False))
        if len(knots) < self.k:
            raise ValueError(
                f"Only {len(knots)} unique covariate values for basis dimension k={self.k}"
            )
        self.knots = knots
        self.rho_ = float(self.rho) if self.rho is not None else float(knots.max() - knots.min())

        C = matern_covariance(knots[:, None] - knots[None, :], self.rho_, self.kappa)
        eigvals, eigvecs = np.linalg.eigh(C)
        order = np.argsort(eigvals)[::-1][:self.k - 2]
        self.eigvals = eigvals[order]
        self.eigvecs = eigvecs[:, order]
        if self.eigvals[-1] <= 1e-12 * self.eigvals[0]:
            raise ValueError(
                f"Covariance at the knots has numerical rank below k - 2 = {self.k - 2}; "
                "reduce k or increase rho"
            )

        self.col_means = self._raw(u).mean(axis=0)
        return self

    def _standardize(self, x: np.ndarray) -> np.ndarray:
        return (np.asarray(x, dtype=float).ravel() - self.x_center) / self.x_scale

    def _raw(self, u: np.ndarray) -> np.ndarray:
        # Rows in blocks: the n x knots covariance is never held at once
        step = max(1, self.block_elems // len(self.knots))
        scale = np.sqrt(self.eigvals)
        out = np.empty((len(u), self.k - 1))
        for start in range(0, len(u), step):
            ub = u[start:start + step]
            Cx = matern_covariance(ub[:, None] - self.knots[None, :], self.rho_, self.kappa)
            # Range-space columns scaled by eigvals^-1/2 so their penalty is the identity
            out[start:start + step, 0] = ub
            out[start:start + step, 1:] = (Cx @ self.eigvecs) / scale
        return out

    def transform(self, x: np.ndarray) -> np.ndarray:
        """Centred model matrix (n, k - 1) for covariate values x."""
        return self._raw(self._standardize(x)) - self.col_means

    def fit_transform(self, x: np.ndarray) -> np.ndarray:
        return self.fit(x).transform(x)

    def penalties(self, select: bool = True) -> list:
        """
        Penalty matrices on the k - 1 smooth coefficients.

        The first penalizes wiggliness (range space). With select=True a second
        penalty acts on the linear null space, so both together can shrink the
        term to zero. The two have disjoint supports.
        """
        p = self.n_coef
        S_range = np.eye(p)
        S_range[0, 0] = 0.0
        S = [S_range]
        if select:
            S_null = np.zeros((p, p))
            S_null[0, 0] = 1.0
            S.append(S_null)
        return S

    def mixed_model_matrices(self, x: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Split the smooth into unpenalized and identity-penalized parts.

        Returns:
            Xf: (n, 1) linear null-space column
            Zr: (n, k - 2) range-space columns with identity penalty, i.e.
                coefficients that can be given iid normal priors
        """
        B = self.transform(x)
        return B[:, :1], B[:, 1:]
