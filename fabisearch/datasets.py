import torch


def cluster_covariance(p: int, n_clusters: int = 2, within: float = 0.75, between: float = 0.2,
                       dtype=torch.float64):
    """
    Covariance matrix of p unit-variance variables split into equal-size clusters.

    Args:
        p (int): Number of variables.
        n_clusters (int): Number of clusters; variables are assigned in contiguous groups.
        within (float): Correlation between two variables of the same cluster.
        between (float): Correlation between variables of different clusters.

    Returns:
        torch.Tensor: Tensor of shape [p, p].
    """
    labels = torch.arange(p) * n_clusters // p
    same = labels.unsqueeze(0) == labels.unsqueeze(1)
    cov = torch.where(same, torch.tensor(within, dtype=dtype), torch.tensor(between, dtype=dtype))
    cov.fill_diagonal_(1.0)
    return cov


def make_sim2(generator: torch.Generator = None, T: int = 200, p: int = 80, change_at: int = 100,
              within: float = 0.75, between: float = 0.2):
    """
    Simulate a network time series with a single change in its clustering structure.

    Rows are independent draws from a multivariate Gaussian whose variables form two clusters.
    After change_at the vertex labels are randomly reshuffled, so the same covariance holds for
    a different grouping of the variables. The result is shifted to be non-negative.

    Args:
        generator (torch.Generator, optional): Random stream for the draws and the reshuffle.
        T (int): Number of time points.
        p (int): Number of variables.
        change_at (int): Last time point of the first regime.
        within (float): Within-cluster correlation.
        between (float): Between-cluster correlation.

    Returns:
        torch.Tensor: Tensor of shape [T, p], float64, non-negative.
    """
    if not 0 < change_at < T:
        raise ValueError("change_at must lie strictly between 0 and T")
    L = torch.linalg.cholesky(cluster_covariance(p, 2, within, between))
    Z = torch.randn(T, p, generator=generator, dtype=torch.float64)
    Y = Z @ L.T

    relabel = torch.randperm(p, generator=generator)
    Y[change_at:] = Y[change_at:, relabel]
    return Y - Y.min()


# Run with: python -m fabisearch.datasets
if __name__ == '__main__':
    Y = make_sim2(torch.Generator().manual_seed(123))
    print("Shape:", tuple(Y.shape))
    before = torch.corrcoef(Y[:100].T)
    after = torch.corrcoef(Y[100:].T)
    print(f"Mean correlation within first cluster, before: {before[:40, :40].mean():.3f}, "
          f"after: {after[:40, :40].mean():.3f}")
