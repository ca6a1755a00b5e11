"""
End-to-end smoke check against a running database and Redis.

Boots the API, creates a customer, a vehicle and a reservation, confirms an
overlapping reservation is refused, then restarts the server and checks the
reservation persisted.
"""

import time
import subprocess
import httpx
import sys
import signal
from datetime import date, datetime, timedelta

from rental_admin.app.core.config import settings

BASE_URL = "http://127.0.0.1:8000"
API_PREFIX = "/v1"
HEADERS = {"Authorization": f"Bearer {settings.admin_api_token}"}
SERVER_CMD = [sys.executable, "-m", "uvicorn", "rental_admin.app.main:app", "--host", "127.0.0.1", "--port", "8000"]

def wait_for_server(retries=10, delay=2):
    url = f"{BASE_URL}/health"
    print(f"Waiting for server at {url}...")
    for i in range(retries):
        try:
            resp = httpx.get(url)
            if resp.status_code == 200:
                print("✅ Server is up!")
                return True
        except httpx.ConnectError:
            pass
        time.sleep(delay)
    print("❌ Server failed to start.")
    return False

def next_monday_at_ten():
    today = date.today()
    monday = today + timedelta(days=7 - today.weekday())
    return datetime(monday.year, monday.month, monday.day, 10, 0)

def stop(proc):
    proc.send_signal(signal.SIGTERM)
    proc.wait()

def run_verification():
    print("\n--- [Step 1] Starting Server (Initial) ---")
    proc = subprocess.Popen(SERVER_CMD, stdout=subprocess.PIPE, stderr=subprocess.PIPE)

    try:
        if not wait_for_server():
            server_logs = proc.communicate(timeout=2)
            print("Server Stderr:", server_logs[1].decode())
            raise RuntimeError("Server start failed")

        print("\n--- [Step 2] Creating Customer and Vehicle ---")
        resp = httpx.post(f"{BASE_URL}{API_PREFIX}/customers", json={"full_name": "Verifica Persistenza"}, headers=HEADERS)
        resp.raise_for_status()
        customer_id = resp.json()["id"]

        resp = httpx.post(
            f"{BASE_URL}{API_PREFIX}/vehicles",
            json={"display_name": f"Smoke Test {int(time.time())}", "daily_rate": 100},
            headers=HEADERS
        )
        resp.raise_for_status()
        vehicle_id = resp.json()["id"]
        print(f"✅ Customer {customer_id}, vehicle {vehicle_id}")

        print("\n--- [Step 3] Creating Reservation ---")
        start = next_monday_at_ten()
        body = {
            "customer_id": customer_id,
            "vehicle_id": vehicle_id,
            "start_at": start.isoformat(),
            "end_at": (start + timedelta(days=2)).isoformat(),
            "total_amount": 200,
        }
        resp = httpx.post(f"{BASE_URL}{API_PREFIX}/reservations", json=body, headers=HEADERS)
        if resp.status_code != 201:
            print(f"❌ Reservation Failed: {resp.status_code} {resp.text}")
            raise RuntimeError("Reservation failed")
        reservation_id = resp.json()["id"]
        print(f"✅ Reservation {reservation_id} created")

        print("\n--- [Step 4] Overlapping Reservation Must Be Refused ---")
        overlap = {**body, "start_at": (start + timedelta(days=1)).isoformat(), "end_at": (start + timedelta(days=3)).isoformat()}
        resp = httpx.post(f"{BASE_URL}{API_PREFIX}/reservations", json=overlap, headers=HEADERS)
        if resp.status_code == 400 and resp.json()["error_code"] == "VEHICLE_UNAVAILABLE":
            print(f"✅ Refused: {resp.json()['message']}")
        else:
            print(f"❌ Overlap accepted or wrong error: {resp.status_code} {resp.text}")
            raise RuntimeError("Overlap check failed")

    finally:
        print("\n--- [Step 5] Stopping Server ---")
        stop(proc)

    time.sleep(2) # Wait for port release

    print("\n--- [Step 6] Restarting Server (Verification) ---")
    proc2 = subprocess.Popen(SERVER_CMD, stdout=subprocess.PIPE, stderr=subprocess.PIPE)

    try:
        if not wait_for_server():
            raise RuntimeError("Server restart failed")

        resp = httpx.get(f"{BASE_URL}{API_PREFIX}/reservations/{reservation_id}", headers=HEADERS)
        if resp.status_code == 200:
            print("✅ Reservation Persisted")
            print(resp.json())
        else:
            print(f"❌ Reservation missing after restart: {resp.status_code} {resp.text}")
            raise RuntimeError("Reservation not persisted")

    finally:
        print("\n--- [Step 7] Stopping Server ---")
        stop(proc2)

if __name__ == "__main__":
    run_verification()
