from concurrent.futures import ThreadPoolExecutor, as_completed

from tqdm import tqdm


def run_tasks(fn, tasks, n_jobs: int = 1, desc: str = None):
    """
    Apply fn to every argument tuple in tasks and return the results in task order.

    If a task raises, tasks that have not started yet are cancelled and the exception is
    re-raised once the running ones finish.

    Args:
        fn (callable): Function called as fn(*task).
        tasks (list of tuple): Argument tuples.
        n_jobs (int): Number of worker threads; 1 runs inline, -1 uses one worker per task.
        desc (str, optional): If given, shows a progress bar with this description.

    Returns:
        list: fn(*task) for each task, in the order of tasks.
    """
    tasks = list(tasks)
    progress = tqdm(total=len(tasks), desc=desc) if desc else None
    if n_jobs == -1:
        n_jobs = len(tasks)

    results = [None] * len(tasks)
    try:
        if n_jobs is None or n_jobs <= 1 or len(tasks) <= 1:
            for i, task in enumerate(tasks):
                results[i] = fn(*task)
                if progress is not None:
                    progress.update(1)
            return results

        executor = ThreadPoolExecutor(max_workers=min(n_jobs, len(tasks)))
        try:
            futures = {executor.submit(fn, *task): i for i, task in enumerate(tasks)}
            for future in as_completed(futures):
                # result() re-raises any worker exception in the caller.
                results[futures[future]] = future.result()
                if progress is not None:
                    progress.update(1)
        except BaseException:
            executor.shutdown(wait=True, cancel_futures=True)
            raise
        executor.shutdown(wait=True)
        return results
    finally:
        if progress is not None:
            progress.close()
