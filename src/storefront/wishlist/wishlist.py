"""Wishlist aggregate — products a user saved for later, with its commands."""

from datetime import UTC, datetime

from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import DateTime, HasMany, Identifier
from protean.utils.globals import current_domain

from storefront.catalogue.product import Product
from storefront.domain import storefront


@storefront.event(part_of="Wishlist")
class WishlistItemAdded:
    __version__ = 1

    user_id: Identifier(required=True)
    product_id: Identifier(required=True)
    added_at: DateTime(required=True)


@storefront.event(part_of="Wishlist")
class WishlistItemRemoved:
    __version__ = 1

    user_id: Identifier(required=True)
    product_id: Identifier(required=True)


@storefront.entity(part_of="Wishlist")
class WishlistItem:
    product_id: Identifier(required=True)
    added_at: DateTime()


@storefront.aggregate
class Wishlist:
    user_id: Identifier(identifier=True)
    items: HasMany(WishlistItem)

    def contains(self, product_id) -> bool:
        return any(str(i.product_id) == str(product_id) for i in self.items)

    @property
    def product_ids(self) -> list[str]:
        return [str(i.product_id) for i in sorted(self.items, key=lambda i: i.added_at)]

    def add(self, product_id):
        """Save a product; saving it twice keeps one entry."""
        if self.contains(product_id):
            return False

        now = datetime.now(UTC)
        self.add_items(WishlistItem(product_id=product_id, added_at=now))
        self.raise_(WishlistItemAdded(user_id=str(self.user_id), product_id=str(product_id), added_at=now))
        return True

    def remove(self, product_id):
        item = next((i for i in self.items if str(i.product_id) == str(product_id)), None)
        if item is None:
            raise ValidationError({"product_id": ["Product is not in the wishlist"]})

        self.remove_items(item)
        self.raise_(WishlistItemRemoved(user_id=str(self.user_id), product_id=str(product_id)))


def wishlist_for(user_id) -> Wishlist:
    try:
        return current_domain.repository_for(Wishlist).get(user_id)
    except ObjectNotFoundError:
        return Wishlist(user_id=user_id)


@storefront.command(part_of="Wishlist")
class AddToWishlist:
    user_id: Identifier(required=True)
    product_id: Identifier(required=True)


@storefront.command(part_of="Wishlist")
class RemoveFromWishlist:
    user_id: Identifier(required=True)
    product_id: Identifier(required=True)


@storefront.command_handler(part_of=Wishlist)
class WishlistHandler:
    @handle(AddToWishlist)
    def add_to_wishlist(self, command):
        try:
            current_domain.repository_for(Product).get(command.product_id)
        except ObjectNotFoundError:
            raise ValidationError({"product_id": [f"Product {command.product_id} does not exist"]}) from None

        wishlist = wishlist_for(command.user_id)
        if wishlist.add(command.product_id):
            current_domain.repository_for(Wishlist).add(wishlist)

    @handle(RemoveFromWishlist)
    def remove_from_wishlist(self, command):
        wishlist = wishlist_for(command.user_id)
        wishlist.remove(command.product_id)
        current_domain.repository_for(Wishlist).add(wishlist)
