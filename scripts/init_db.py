import sys
from pathlib import Path

# Ensure project root is on sys.path when running as a script
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from salesflow_crm.auth.crud import bootstrap_admin_if_needed
from salesflow_crm.config import load_config
from salesflow_crm.db import init_db


def main() -> None:
    cfg = load_config()
    init_db(cfg.DB_DSN)
    boot = bootstrap_admin_if_needed(cfg)
    if boot:
        print(f"Bootstrapped admin user: {boot.get('username')}")

    print(f"DB initialized: {cfg.DB_DSN}")


if __name__ == "__main__":
    main()
