"""Box office backend: seat inventory, holds, discounts and orders."""
