"""Standalone report export — write a block report workbook from the command line."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from stone_yard.app import configure_logging, open_yard
from stone_yard.io.excel_handler import REPORTS, export_sold_excel


def main():
    if len(sys.argv) < 3:
        names = "|".join(REPORTS)
        print(f"Usage: python export_report.py <{names}> <output.xlsx> "
              "[month year]")
        sys.exit(1)

    report = sys.argv[1].lower()
    filepath = sys.argv[2]
    if report not in REPORTS:
        print(f"Unknown report: {report}. Use one of: {', '.join(REPORTS)}.")
        sys.exit(1)

    configure_logging()
    repo = open_yard().repo

    if report == "sold" and len(sys.argv) >= 5:
        count = export_sold_excel(repo, filepath, month=int(sys.argv[3]),
                                  year=int(sys.argv[4]))
    else:
        count = REPORTS[report](repo, filepath)

    print(f"Exported {count} blocks to {filepath}")


if __name__ == "__main__":
    main()
