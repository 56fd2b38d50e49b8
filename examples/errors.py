from langchain_gotama import ChatGotama, GotamaAPIError, ProtocolError
from langchain_core.messages import HumanMessage

try:
    llm = ChatGotama(api_key="anyway")
    for chunk in llm.stream([HumanMessage(content="Hello")]):
        print(chunk.content, end="", flush=True)
except GotamaAPIError as e:
    if e.is_connection_error:
        print(f"Network problem: {e.message}")
    elif e.is_auth_error:
        print("Check your ANTHROPIC_API_KEY.")
    elif e.is_overloaded or e.is_rate_limited:
        print(f"Busy ({e.status_code}), consider retrying.")
    else:
        print(e.to_dict())
except ProtocolError as e:
    print(f"Stream failed mid-response: {e} ({e.error_type})")
