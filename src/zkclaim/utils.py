import os


def get_n_jobs():
    """Get number of supported cores for multiprocessing if enabled"""
    check_env = os.environ.get("ZKCLAIM_PARALLEL_CPU")
    if check_env:
        return int(check_env)
    else:
        return -1


def next_power_of_two(n: int):
    """Get next 2^x number from n"""
    return 1 << (n - 1).bit_length()
