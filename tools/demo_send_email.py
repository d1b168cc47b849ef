import json, os, requests, subprocess, sys

BASE = os.getenv("MAILRELAY_URL", "http://127.0.0.1:8497")
TO = sys.argv[1] if len(sys.argv) > 1 else "jane.doe@example.org"

out = subprocess.check_output([sys.executable, "tools/sign_request.py", "fixtures/submission.json"])
envelope = json.loads(out.decode("utf-8"))

form = {
    "to": TO,
    "subject": "Your class-action submission",
    "text": "Your request for the class-action lawsuit has been received.",
    **envelope,
}
files = {}
if os.path.exists("fixtures/claim.pdf"):
    files["pdf"] = ("claim.pdf", open("fixtures/claim.pdf", "rb"), "application/pdf")

resp = requests.post(BASE + "/send-email", data=form, files=files or None, timeout=60)
print("Send:", resp.status_code, resp.text)
print("CSP:", resp.headers.get("Content-Security-Policy"))
