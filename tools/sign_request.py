import json, os, sys, time
from mailrelay.signing import sign_payload

def main(payload_path: str):
    data = json.load(open(payload_path, "r", encoding="utf-8"))
    secret = os.getenv("SECRET_KEY", "default_secret_key")
    timestamp = int(time.time() * 1000)
    envelope = {
        "data": json.dumps(data, ensure_ascii=False),
        "timestamp": timestamp,
        "signature": sign_payload(data, timestamp, secret),
    }
    print(json.dumps(envelope, indent=2, ensure_ascii=False))

if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("Usage: python tools/sign_request.py <payload.json>"); raise SystemExit(2)
    main(sys.argv[1])
