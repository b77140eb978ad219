import torch


def permute_rows(block: torch.Tensor, times: torch.Tensor, generator: torch.Generator = None):
    """
    Shuffle whole rows of a block while keeping its time labels in place.

    All variables of a time point move together, so the cross-sectional structure of each
    row survives while the temporal order is destroyed. Because the labels are not moved,
    selecting rows by label afterwards picks scrambled content for that label.

    Args:
        block (torch.Tensor): Tensor of shape [n, p].
        times (torch.Tensor): Tensor of shape [n] with the time label of each row.
        generator (torch.Generator, optional): Random stream for the permutation.

    Returns:
        block (torch.Tensor): New tensor of shape [n, p] with rows in random order.
        times (torch.Tensor): The unchanged labels, aligned with the returned rows.
    """
    if block.shape[0] != times.shape[0]:
        raise ValueError("block and times must have the same number of rows")
    order = torch.randperm(block.shape[0], generator=generator).to(block.device)
    return block[order], times.clone()


def shuffle_entries(data: torch.Tensor, generator: torch.Generator = None):
    """
    Scatter every entry of a matrix to a random position of a same-shaped matrix.

    Both row and column structure are destroyed; only the marginal distribution of the
    entries is kept.

    Args:
        data (torch.Tensor): Tensor of shape [n, p].
        generator (torch.Generator, optional): Random stream for the shuffle.

    Returns:
        torch.Tensor: Tensor of shape [n, p].
    """
    flat = data.reshape(-1)
    order = torch.randperm(flat.shape[0], generator=generator).to(data.device)
    return flat[order].reshape(data.shape)


def select_times(block: torch.Tensor, times: torch.Tensor, lower: int, upper: int):
    """Rows of block whose label t satisfies lower < t <= upper."""
    mask = (times > lower) & (times <= upper)
    return block[mask.to(block.device)]
