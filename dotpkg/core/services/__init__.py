"""Operations across package managers."""
