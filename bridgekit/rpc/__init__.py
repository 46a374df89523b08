"""JSON-RPC 2.0 messages, block selectors, services, subscriptions, message handling and an HTTP connection."""