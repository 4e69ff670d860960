"""Allow ``python -m pmu``; used to spawn the daemon."""

from pmu.cli import main

main()
