import torch

_SEED_HIGH = 2 ** 62


def make_generator(seed: int):
    """
    Create a CPU random generator with a fixed seed.

    Args:
        seed (int): Seed for the generator.

    Returns:
        torch.Generator: A freshly seeded generator.
    """
    generator = torch.Generator(device="cpu")
    generator.manual_seed(int(seed))
    return generator


def spawn(generator: torch.Generator, n: int):
    """
    Derive n independent generators from a parent generator.

    Child seeds are drawn from the parent in one call, so the children only depend
    on the parent's state and never on the order in which they are later consumed.

    Args:
        generator (torch.Generator): Parent generator; its state advances.
        n (int): Number of children.

    Returns:
        List[torch.Generator]: n child generators.
    """
    if n <= 0:
        return []
    seeds = torch.randint(0, _SEED_HIGH, (n,), generator=generator, dtype=torch.int64)
    return [make_generator(s) for s in seeds.tolist()]


def resolve_generator(generator: torch.Generator = None):
    """
    Return generator itself, or a new one seeded from torch's global random stream.

    Seeding from the global stream keeps calls reproducible under torch.manual_seed.
    """
    if generator is not None:
        return generator
    return make_generator(int(torch.randint(0, _SEED_HIGH, (1,), dtype=torch.int64)))
