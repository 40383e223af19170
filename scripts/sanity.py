from __future__ import annotations

import json
import platform

import numpy as np
import torch


def main() -> None:
    info = {
        "python": platform.python_version(),
        "numpy": np.__version__,
        "torch": torch.__version__,
    }
    try:
        import kenlm

        info["kenlm"] = getattr(kenlm, "__version__", "installed")
    except ImportError:
        info["kenlm"] = None
    print(json.dumps(info, indent=2, sort_keys=True))


if __name__ == "__main__":
    main()
