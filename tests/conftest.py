import pathlib
import sys

# Let the test modules import vitaltrace and the shared fakes without installing.
TESTS = pathlib.Path(__file__).resolve().parent
SRC = TESTS.parent / "src"
for path in (SRC, TESTS):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))
