import logging
import time
from dataclasses import dataclass
from enum import Enum

import torch

from .errors import ComputationError, InvalidInputError

logger = logging.getLogger(__name__)


class Algorithm(str, Enum):
    """Multiplicative update families understood by BatchNMF."""

    BRUNET = "brunet"
    LEE = "lee"
    NSNMF = "nsNMF"

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        for member in cls:
            if member.value.lower() == str(value).lower():
                return member
        raise InvalidInputError(
            f"Unsupported algorithm {value!r}; expected one of {[m.value for m in cls]}"
        )


@dataclass(frozen=True)
class NMFResult:
    """
    Outcome of one (multi-restart) factorization.

    Attributes:
        loss: Residual of the best restart (lower is a better fit).
        consensus: [p, p] co-clustering frequency of the variables across restarts.
        n_iter: Number of update iterations the restart batch ran for.
    """

    loss: float
    consensus: torch.Tensor
    n_iter: int


def _as_block(block, dtype, device):
    if not torch.is_tensor(block):
        try:
            block = torch.as_tensor(block)
        except (TypeError, ValueError) as exc:
            raise InvalidInputError(f"Block is not a numeric matrix: {exc}") from exc
    if block.dim() != 2 or block.shape[0] == 0 or block.shape[1] == 0:
        raise InvalidInputError(f"Block must be a non-empty 2-D matrix, got shape {tuple(block.shape)}")
    if block.is_complex() or block.dtype == torch.bool:
        raise InvalidInputError("Block entries must be real numbers")
    block = block.to(device=device, dtype=dtype)
    if not torch.isfinite(block).all():
        raise InvalidInputError("Block contains non-finite entries")
    if (block < 0).any():
        raise InvalidInputError("Block contains negative entries; NMF requires non-negative data")
    return block


def kl_divergence(V: torch.Tensor, WH: torch.Tensor):
    """
    Generalized Kullback-Leibler divergence D(V || WH), summed over the last two dimensions.

    Entries where V is zero contribute WH only (0 * log 0 is taken as 0).
    """
    eps = torch.finfo(WH.dtype).eps
    WH = WH.clamp_min(eps)
    log_term = torch.where(V > 0, V * torch.log(V.clamp_min(eps) / WH), torch.zeros_like(WH))
    return (log_term - V + WH).sum(dim=(-2, -1))


def euclidean_loss(V: torch.Tensor, WH: torch.Tensor):
    """Half of the squared Frobenius distance between V and WH, summed over the last two dimensions."""
    return 0.5 * ((V - WH) ** 2).sum(dim=(-2, -1))


class BatchNMF:
    def __init__(self, algorithm="brunet", device: torch.device = None, precision="float64",
                 max_iter: int = 2000, tol: float = 1e-5, check_every: int = 10, timeout: float = None,
                 theta: float = 0.5):
        """
        Initialize the BatchNMF instance.

        All randomized restarts of a fit are solved together as one batched problem, so a call
        with nruns restarts costs roughly one large matrix product per update instead of nruns
        small ones.

        Args:
            algorithm (str or Algorithm): Update family: "brunet" (Kullback-Leibler), "lee" (Euclidean)
                                          or "nsNMF" (nonsmooth Kullback-Leibler).
            device (torch.device, optional): The device on which to perform computations.
                                             Defaults to CUDA if available.
            precision (str or torch.dtype, optional): The numerical precision to use. Options:
                                                      "float64" (default), "float32", or "float16".
            max_iter (int): Maximum number of multiplicative updates per fit.
            tol (float): Relative objective change below which a restart is considered converged.
            check_every (int): Number of updates between objective evaluations.
            timeout (float, optional): Wall-clock deadline in seconds for a single fit.
            theta (float): Smoothing parameter of nsNMF, in [0, 1].
        """
        self.algorithm = Algorithm.parse(algorithm)
        self.device = device or torch.device("cuda" if torch.cuda.is_available() else "cpu")

        # Convert precision from string to torch.dtype if necessary.
        if isinstance(precision, str):
            precision = precision.lower()
            if precision == "float32":
                self.precision = torch.float32
            elif precision == "float64":
                self.precision = torch.float64
            elif precision == "float16":
                self.precision = torch.float16
            else:
                raise ValueError("Unsupported precision value: " + precision)
        else:
            self.precision = precision

        if max_iter < 1:
            raise ValueError("max_iter must be at least 1")
        if not 0.0 <= theta <= 1.0:
            raise ValueError("theta must lie in [0, 1]")
        self.max_iter = max_iter
        self.tol = tol
        self.check_every = max(1, check_every)
        self.timeout = timeout
        self.theta = theta

    def _smoothing(self, rank: int):
        eye = torch.eye(rank, device=self.device, dtype=self.precision)
        ones = torch.ones(rank, rank, device=self.device, dtype=self.precision)
        return (1.0 - self.theta) * eye + (self.theta / rank) * ones

    def _reconstruct(self, W, H, S):
        if S is None:
            return W @ H
        return W @ S @ H

    def _objective(self, V, W, H, S):
        WH = self._reconstruct(W, H, S)
        if self.algorithm == Algorithm.LEE:
            return euclidean_loss(V, WH)
        return kl_divergence(V, WH)

    def _update(self, V, W, H, S, eps):
        if self.algorithm == Algorithm.LEE:
            H = H * (W.transpose(1, 2) @ V) / (W.transpose(1, 2) @ W @ H + eps)
            W = W * (V @ H.transpose(1, 2)) / (W @ H @ H.transpose(1, 2) + eps)
        elif self.algorithm == Algorithm.BRUNET:
            ratio = V / (W @ H).clamp_min(eps)
            H = H * (W.transpose(1, 2) @ ratio) / W.sum(dim=1).unsqueeze(-1).clamp_min(eps)
            ratio = V / (W @ H).clamp_min(eps)
            W = W * (ratio @ H.transpose(1, 2)) / H.sum(dim=2).unsqueeze(1).clamp_min(eps)
        else:
            # nsNMF: Kullback-Leibler updates on W S and S H, then unit-sum basis columns.
            WS = W @ S
            ratio = V / (WS @ H).clamp_min(eps)
            H = H * (WS.transpose(1, 2) @ ratio) / WS.sum(dim=1).unsqueeze(-1).clamp_min(eps)
            SH = S @ H
            ratio = V / (W @ SH).clamp_min(eps)
            W = W * (ratio @ SH.transpose(1, 2)) / SH.sum(dim=2).unsqueeze(1).clamp_min(eps)
            W = W / W.sum(dim=1, keepdim=True).clamp_min(eps)
        return W.clamp_min(eps), H.clamp_min(eps)

    def fit(self, block, rank: int, nruns: int = 1, generator: torch.Generator = None):
        """
        Factorize a non-negative block as W @ H with nruns random restarts and keep the best one.

        Args:
            block (torch.Tensor): Tensor of shape [T, p] (time points by variables), non-negative.
            rank (int): Number of latent components.
            nruns (int): Number of randomized restarts.
            generator (torch.Generator, optional): Random stream for the initial factors.

        Returns:
            NMFResult: Best residual, consensus matrix over the restarts and iteration count.
        """
        if int(rank) < 1:
            raise InvalidInputError(f"rank must be a positive integer, got {rank}")
        if int(nruns) < 1:
            raise InvalidInputError(f"nruns must be a positive integer, got {nruns}")
        rank, nruns = int(rank), int(nruns)

        V = _as_block(block, self.precision, self.device)
        n, m = V.shape
        eps = torch.finfo(self.precision).eps
        scale = float(V.max()) if float(V.max()) > 0 else 1.0

        # Random restarts, drawn on CPU so results do not depend on the device.
        W = torch.rand(nruns, n, rank, generator=generator, dtype=torch.float64) * scale
        H = torch.rand(nruns, rank, m, generator=generator, dtype=torch.float64) * scale
        W = W.to(device=self.device, dtype=self.precision).clamp_min(eps)
        H = H.to(device=self.device, dtype=self.precision).clamp_min(eps)
        V = V.unsqueeze(0)
        S = self._smoothing(rank) if self.algorithm == Algorithm.NSNMF else None

        started = time.monotonic()
        previous = self._objective(V, W, H, S)
        n_iter = 0
        for n_iter in range(1, self.max_iter + 1):
            W, H = self._update(V, W, H, S, eps)
            if n_iter % self.check_every:
                continue
            current = self._objective(V, W, H, S)
            change = (previous - current).abs() / previous.abs().clamp_min(eps)
            previous = current
            if bool((change < self.tol).all()):
                break
            if self.timeout is not None and time.monotonic() - started > self.timeout:
                raise ComputationError(
                    f"NMF fit exceeded its {self.timeout}s deadline after {n_iter} iterations"
                )

        losses = self._objective(V, W, H, S)
        finite = torch.isfinite(losses)
        if not bool(finite.any()):
            raise ComputationError(f"NMF ({self.algorithm.value}, rank {rank}) produced no finite residual")
        best = int(torch.where(finite, losses, torch.full_like(losses, float("inf"))).argmin())

        # Each variable joins the component carrying its largest coefficient.
        labels = H[finite].argmax(dim=1)
        connectivity = (labels.unsqueeze(2) == labels.unsqueeze(1)).to(self.precision)
        consensus = connectivity.mean(dim=0)

        logger.debug("NMF %s rank=%d nruns=%d converged in %d iterations, loss=%.6g",
                     self.algorithm.value, rank, nruns, n_iter, float(losses[best]))
        return NMFResult(loss=float(losses[best]), consensus=consensus, n_iter=n_iter)


# Run with: python -m fabisearch.nmf
if __name__ == '__main__':
    torch.manual_seed(42)

    # An exactly rank-2 non-negative matrix: 100 time points, 20 variables in two groups.
    W_true = torch.rand(100, 2, dtype=torch.float64)
    H_true = torch.zeros(2, 20, dtype=torch.float64)
    H_true[0, :10] = 1.0
    H_true[1, 10:] = 1.0
    Y = W_true @ H_true

    model = BatchNMF(algorithm="brunet", device=torch.device("cpu"))
    for k in (1, 2, 3):
        t = time.time()
        result = model.fit(Y, rank=k, nruns=10, generator=torch.Generator().manual_seed(k))
        print(f"rank {k}: loss = {result.loss:.6f} ({result.n_iter} iterations, {time.time() - t:.02f} sec)")
    print("Consensus of rank 2 fit (first 12 variables):")
    print(model.fit(Y, rank=2, nruns=10).consensus[:12, :12])
