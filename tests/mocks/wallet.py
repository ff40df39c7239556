"""测试钱包（公开的示例私钥，不持有任何资产）"""

from eth_account import Account

SIGNING_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
SIGNER_ADDRESS = Account.from_key(SIGNING_KEY).address
OWNER_ADDRESS = "0x" + "ab" * 20
