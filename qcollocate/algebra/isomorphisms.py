"""Real isomorphisms of complex kets and operators."""

from typing import Optional, Sequence
import numpy as np
from numpy.typing import NDArray


def ket_to_iso(psi: NDArray) -> NDArray:
    """ψ ↦ [Re ψ; Im ψ]."""
    psi = np.asarray(psi)
    return np.concatenate([psi.real, psi.imag]).astype(float)


def iso_to_ket(psi_iso: NDArray) -> NDArray:
    """[a; b] ↦ a + ib."""
    psi_iso = np.asarray(psi_iso)
    n = len(psi_iso) // 2
    return psi_iso[:n] + 1j * psi_iso[n:]


def operator_to_iso_vec(U: NDArray) -> NDArray:
    """
    Stack the iso form of each column of U, column by column.

    Column j of an N x N operator occupies entries [2Nj, 2N(j+1)) as
    [Re U[:, j]; Im U[:, j]].
    """
    U = np.asarray(U)
    return np.concatenate(
        [np.concatenate([U[:, j].real, U[:, j].imag]) for j in range(U.shape[1])]
    ).astype(float)


def iso_vec_dim(length: int) -> int:
    """Operator dimension N of an iso vector of length 2N²."""
    N = int(round(np.sqrt(length / 2)))
    if 2 * N * N != length:
        raise ValueError(f"length {length} is not an operator iso vector (2N²)")
    return N


def iso_vec_to_operator(U_iso: NDArray) -> NDArray:
    """Inverse of operator_to_iso_vec."""
    U_iso = np.asarray(U_iso)
    N = iso_vec_dim(len(U_iso))
    cols = U_iso.reshape(N, 2 * N)  # one row per operator column
    return (cols[:, :N] + 1j * cols[:, N:]).T


def iso_vec_subspace_indices(N: int, subspace: Optional[Sequence[int]] = None) -> NDArray:
    """
    Entries of an N x N operator iso vector that belong to the subspace block.

    The selected entries, in order, form the iso vector of
    U[subspace][:, subspace] for a sorted subspace.

    Args:
        N: Operator dimension
        subspace: Sorted basis indices (None or empty means all)

    Returns:
        Integer array of iso vector positions
    """
    if subspace is None or len(subspace) == 0:
        subspace = np.arange(N)
    subspace = np.asarray(subspace, dtype=np.intp)

    indices = []
    for j in subspace:
        base = 2 * N * j
        indices.append(base + subspace)       # real parts
        indices.append(base + N + subspace)   # imaginary parts
    return np.concatenate(indices)


def validate_subspace(subspace: Optional[Sequence[int]], N: int) -> Optional[NDArray]:
    """
    Sorted, unique, in-range subspace indices, or None for the full space.

    Raises:
        ValueError: for out-of-range or repeated indices
    """
    if subspace is None or len(subspace) == 0:
        return None
    sub = np.asarray(subspace, dtype=np.intp)
    if sub.ndim != 1:
        raise ValueError("subspace must be a flat sequence of indices")
    if sub.min() < 0 or sub.max() >= N:
        raise ValueError(f"subspace indices must lie in [0, {N}), got {sub.tolist()}")
    if len(np.unique(sub)) != len(sub):
        raise ValueError(f"subspace indices must be unique, got {sub.tolist()}")
    return np.sort(sub)


def iso_overlap_directions(goal_iso: NDArray, column_length: int) -> tuple[NDArray, NDArray]:
    """
    Real directions g1, g2 with ⟨G, X⟩ = g1·x + i g2·x.

    ⟨G, X⟩ = Σ conj(G_ij) X_ij for complex G, X with iso vectors g, x built
    from columns of length column_length = 2N (a ket is a single column).
    Per column, with g = [c; d]: g1 = [c; d] and g2 = [-d; c].
    """
    goal_iso = np.asarray(goal_iso, dtype=float)
    N = column_length // 2
    cols = goal_iso.reshape(-1, column_length)
    c, d = cols[:, :N], cols[:, N:]
    g1 = goal_iso.copy()
    g2 = np.concatenate([-d, c], axis=1).ravel()
    return g1, g2
