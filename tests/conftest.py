import os
import sys
from pathlib import Path

# Make the repository root importable so `import src.x` works without an install.
root = Path(__file__).resolve().parents[1]
if str(root) not in sys.path:
    sys.path.insert(0, str(root))
# Tests read config.example.yaml / .env.example relative to the repo root
os.chdir(root)
# Keep a developer's real secrets out of the test run
for _name in ("OPENROUTER_API_KEY", "GROQ_API_KEY", "TAVILY_API_KEY"):
    os.environ.pop(_name, None)
