import os
from datetime import datetime

from data_preparation import config


def create_run_folder(base=config.RUNS_DIR):
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    run_dir = os.path.join(base, f"run_{timestamp}")
    os.makedirs(run_dir, exist_ok=True)
    return run_dir
