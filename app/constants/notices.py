"""Short notices sent to the messenger counterpart on configuration gaps and relay errors."""

NOT_CONFIGURED_NOTICE = (
    "⚠️ Integration not configured. "
    "Link this profile to a Bitrix24 domain in the integration settings."
)
NO_TENANT_NOTICE = (
    "⚠️ Integration not configured. "
    "Please contact the administrator to set up the integration."
)
CONNECTION_ESTABLISHED_NOTICE = (
    "✅ Connection established!\n\n"
    "🌐 Domain: {domain}\n\n"
    "You can now send messages."
)
LINE_NOT_CONFIGURED_NOTICE = (
    "⚠️ Open line not configured!\n\n"
    "Ask the administrator to activate the connector on an open line."
)
RELAY_FAILED_NOTICE = "❌ Error sending message to Bitrix24. Please try again later."
