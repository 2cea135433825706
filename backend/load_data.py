"""
Upload Script - sends a meeting attendance export to the import API.

Posts the file with its cohort fields to /api/import/attendance and prints
the import summary. Run it from inside the backend container or from the
host.

Usage:
    python load_data.py <export.csv> <intake> <year> [module_code]
    python load_data.py "MN5070NU Week 3.csv" Spring 2026
    API_URL=http://backend:8000 python load_data.py export.csv Autumn 2025 MN5070NU
"""

import os
import sys

import httpx


def upload_export(client: httpx.Client, api_url: str, path: str,
                  intake: str, year: str, module_code: str = "") -> dict:
    """
    Upload one export file and return the parsed JSON response.

    Raises:
        RuntimeError: the API rejected the file; the message is the API's error
    """
    form = {"intake": intake, "year": str(year)}
    if module_code:
        form["moduleCode"] = module_code

    with open(path, "rb") as f:
        files = {"file": (os.path.basename(path), f, "text/csv")}
        resp = client.post(f"{api_url}/api/import/attendance", data=form, files=files)

    try:
        body = resp.json()
    except ValueError:
        body = {}
    if resp.status_code != 200:
        raise RuntimeError("HTTP {}: {}".format(resp.status_code, body.get("error", resp.text)))
    return body


def print_summary(result: dict):
    print("=" * 60)
    print("ATTENDANCE IMPORT SUMMARY")
    print("=" * 60)
    print(f"  Module:              {result.get('moduleCode', '?')}")
    print(f"  Cohort:              {result.get('intake', '?')} {result.get('year', '?')}")
    print(f"  Session ID:          {result.get('sessionId', '?')}")
    print(f"  Rows Read:           {result.get('rowsRead', '?')}")
    print(f"  Attendance Upserted: {result.get('attendanceUpserted', '?')}")
    print(f"  Eligible:            {result.get('eligibleCount', '?')}")
    print(f"  Declared Duration:   {result.get('durationMin')} min")
    print(f"  Source:              {result.get('sourceUsed', '?')}")
    print("=" * 60)


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) < 3:
        print(__doc__)
        return 2

    path, intake, year = argv[0], argv[1], argv[2]
    module_code = argv[3] if len(argv) > 3 else ""
    api_url = os.getenv("API_URL", "http://localhost:8000")

    if not os.path.exists(path):
        print(f"Error: Could not find {path}")
        return 1

    print(f"Uploading {path} to {api_url}")
    with httpx.Client(timeout=60.0) as client:
        try:
            result = upload_export(client, api_url, path, intake, year, module_code)
        except (RuntimeError, httpx.HTTPError) as e:
            print(f"❌ Import failed: {e}")
            return 1

    print_summary(result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
