from langchain_core.messages import HumanMessage
from langchain_dify import ChatDify, DifyAPIError, DifyTransportError

try:
    llm = ChatDify(api_key="app-anyway")
    res = llm.invoke([HumanMessage(content="Hello")])
    print(res.content)
except DifyAPIError as e:
    if e.is_auth_error:
        print("Check your DIFY_API_KEY.")
    elif e.is_validation_error:
        print(f"Bad request: {e.message}")
    elif e.is_rate_limited:
        print("Rate limited, slow down.")
    elif e.is_server_error:
        print(f"Server error {e.status_code} - consider retrying.")
    else:
        print(e.to_dict())
except DifyTransportError as e:
    print(f"Stream broke off: {e.message}")
