"""Operations that consume an opened layout (install, secrets)."""
