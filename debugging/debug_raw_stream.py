import logging
import os

import dotenv
import httpx

from langchain_gotama.stream import ReleaseStream

dotenv.load_dotenv()

logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s - %(message)s")

payload = {
    "model": "claude-3-5-sonnet-20241022",
    "max_tokens": 300,
    "stream": True,
    "messages": [{"role": "user", "content": "Cita Dhp 1 dentro de <citation>...</citation>."}],
}
headers = {
    "x-api-key": os.environ["ANTHROPIC_API_KEY"],
    "anthropic-version": "2023-06-01",
    "Accept": "text/event-stream",
}

with httpx.stream("POST", "https://api.anthropic.com/v1/messages", headers=headers, json=payload, timeout=60) as r:
    print("status=", r.status_code)
    stream = ReleaseStream(r.iter_lines(), on_close=r.close)
    for i, unit in enumerate(stream):
        print("i=", i, type(unit).__name__, repr(unit.text))

print("outcome=", stream.outcome)
