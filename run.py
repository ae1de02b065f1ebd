# run.py: launcher for Herald
# Gives clear diagnostics when the package can't be imported from the repo root.

import os, sys

ROOT = os.path.abspath(os.path.dirname(__file__))
sys.path.insert(0, ROOT)  # ensure repo root is importable

def _die(msg):
    print("========== LAUNCH DIAGNOSTICS ==========")
    print(f"CWD: {os.getcwd()}")
    print(f"ROOT: {ROOT}")
    try:
        print("Top-level entries:", os.listdir(ROOT))
    except OSError as e:
        print("listdir failed:", e)
    print(msg)
    print("========================================")
    raise SystemExit(1)

try:
    from herald.main import main
except ModuleNotFoundError as e:
    _die(f"Could not import herald.main ({e}). Install deps with: pip install -e .")

main()
