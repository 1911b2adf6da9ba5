"""paranet: launch and tear down ephemeral relay-chain test networks."""
