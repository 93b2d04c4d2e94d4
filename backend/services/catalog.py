from collections import defaultdict
from typing import Dict, List
from sqlalchemy import or_
from schema import (
    Category, Color, Discount, DiscountCategory, DiscountProduct, DiscountSubcategory,
    Product, ProductImage, ProductTag, ProductVariant, PromoCode, Size, Subcategory,
)
from services.pricing import resolve_discount


class CatalogService:
    """
    Read-side queries shared by the storefront, cart, wishlist and checkout.

    Discounts, images and stock are always fetched fresh per request; the
    grouping helpers batch them by product id so a page of N products costs
    a constant number of queries.
    """
    def __init__(self, db):
        self.db = db

    def discounts_by_product(self, product_ids) -> Dict[int, List[Discount]]:
        """
        Collects the discounts that apply to each product.

        A discount applies when it is scoped to ``all``, or when its link
        table names the product, the product's category or its subcategory.
        Each product's list is in discount id order, which is the order the
        resolver's first-direct rule reads.
        """
        grouped = defaultdict(list)
        if not product_ids:
            return grouped
        products = (
            self.db.query(Product.id, Product.category_id, Product.subcategory_id)
            .filter(Product.id.in_(set(product_ids)))
            .all()
        )
        if not products:
            return grouped

        links = {scope: defaultdict(set) for scope in ("products", "categories", "subcategories")}
        lookups = (
            ("products", DiscountProduct, DiscountProduct.product_id, {p.id for p in products}),
            ("categories", DiscountCategory, DiscountCategory.category_id, {p.category_id for p in products}),
            ("subcategories", DiscountSubcategory, DiscountSubcategory.subcategory_id, {p.subcategory_id for p in products}),
        )
        for scope, model, column, ids in lookups:
            for discount_id, target_id in self.db.query(model.discount_id, column).filter(column.in_(ids)).all():
                links[scope][discount_id].add(target_id)

        linked_ids = set().union(*(scope_links.keys() for scope_links in links.values()))
        discounts = (
            self.db.query(Discount)
            .filter(or_(Discount.apply_to == "all", Discount.id.in_(linked_ids)))
            .order_by(Discount.id.asc())
            .all()
        )
        for d in discounts:
            for p in products:
                if d.apply_to == "all":
                    applies = True
                elif d.apply_to == "products":
                    applies = p.id in links["products"][d.id]
                elif d.apply_to == "categories":
                    applies = p.category_id in links["categories"][d.id]
                elif d.apply_to == "subcategories":
                    applies = p.subcategory_id in links["subcategories"][d.id]
                else:
                    applies = False
                if applies:
                    grouped[p.id].append(d)
        return grouped

    def own_discounts(self, product_id) -> List[Discount]:
        """
        Product-scoped discounts linked to this product and no other.

        These are the discounts the admin product form owns; shared and
        category-wide discounts are managed from the discounts screen.
        """
        linked = [
            row.discount_id
            for row in self.db.query(DiscountProduct.discount_id).filter_by(product_id=product_id).all()
        ]
        if not linked:
            return []
        shared = {
            row.discount_id
            for row in self.db.query(DiscountProduct.discount_id)
            .filter(DiscountProduct.discount_id.in_(linked), DiscountProduct.product_id != product_id)
            .all()
        }
        return (
            self.db.query(Discount)
            .filter(
                Discount.id.in_(set(linked) - shared),
                Discount.apply_to == "products",
            )
            .order_by(Discount.id.asc())
            .all()
        )

    def images_by_product(self, product_ids) -> Dict[int, List[ProductImage]]:
        grouped = defaultdict(list)
        if not product_ids:
            return grouped
        rows = (
            self.db.query(ProductImage)
            .filter(ProductImage.product_id.in_(set(product_ids)))
            .order_by(ProductImage.id.asc())
            .all()
        )
        for img in rows:
            grouped[img.product_id].append(img)
        return grouped

    @staticmethod
    def image_for(images, color_id=None):
        """
        Picks the image matching a variant's color, falling back to the first image.
        """
        if not images:
            return ""
        for img in images:
            if color_id is not None and img.color_id == color_id:
                return img.url
        return images[0].url

    def product_card(self, product, discounts, images, quantity=1):
        result = resolve_discount(discounts, product.price, quantity)
        return {
            "id": product.id,
            "name": product.name,
            "price": product.price,
            "discounted_price": round(result.discounted_price, 2),
            "discounted_text": result.discounted_text,
            "image": self.image_for(images),
            "category_id": product.category_id,
            "subcategory_id": product.subcategory_id,
        }

    def product_cards(self, products):
        ids = [p.id for p in products]
        discounts = self.discounts_by_product(ids)
        images = self.images_by_product(ids)
        return [self.product_card(p, discounts[p.id], images[p.id]) for p in products]

    def inventory(self, product_id):
        """
        Groups a product's variants by color, each with its sizes and stock.

        Returns:
            A list of ``{color_id, name, color_code, sizes: [...]}`` entries
            ordered by size id within each color.
        """
        rows = (
            self.db.query(ProductVariant, Size, Color)
            .join(Size, ProductVariant.size_id == Size.id)
            .join(Color, ProductVariant.color_id == Color.id)
            .filter(ProductVariant.product_id == product_id)
            .order_by(Size.id.asc())
            .all()
        )
        by_color = {}
        for variant, size, color in rows:
            entry = by_color.setdefault(color.id, {
                "color_id": color.id,
                "name": color.name,
                "color_code": color.color_code,
                "sizes": [],
            })
            entry["sizes"].append({
                "variant_id": variant.id,
                "size_id": size.id,
                "name": size.name,
                "quantity": variant.quantity,
            })
        return list(by_color.values())

    def product_detail(self, product, quantity=1):
        category = self.db.get(Category, product.category_id)
        subcategory = self.db.get(Subcategory, product.subcategory_id)
        discounts = self.discounts_by_product([product.id])[product.id]
        images = self.images_by_product([product.id])[product.id]
        tags = [t.tag for t in self.db.query(ProductTag).filter_by(product_id=product.id).all()]
        result = resolve_discount(discounts, product.price, quantity)

        return {
            "id": product.id,
            "name": product.name,
            "description": product.description,
            "price": product.price,
            "is_active": product.is_active,
            "category": category.name if category else "",
            "subcategory": subcategory.name if subcategory else "",
            "tags": tags,
            "images": [{"url": i.url, "color_id": i.color_id} for i in images],
            "offers": [
                {"name": d.name, "type": d.type, "value": d.value, "min_quantity": d.min_quantity}
                for d in discounts
            ],
            "pricing": {
                "quantity": quantity,
                "discounted_price": round(result.discounted_price, 2),
                "discounted_text": result.discounted_text,
                "total": round(result.discounted_price * quantity, 2),
            },
            "inventory": self.inventory(product.id),
        }

    def product_for_edit(self, product):
        """
        Returns a product in the same shape the admin ProductForm accepts.
        """
        pid = product.id
        inventory = [
            {
                "color_id": c["color_id"],
                "sizes": [{"size_id": s["size_id"], "quantity": s["quantity"]} for s in c["sizes"]],
            }
            for c in self.inventory(pid)
        ]
        return {
            "id": pid,
            "title": product.name,
            "description": product.description,
            "price": product.price,
            "is_active": product.is_active,
            "category_id": product.category_id,
            "subcategory_id": product.subcategory_id,
            "tags": [t.tag for t in self.db.query(ProductTag).filter_by(product_id=pid).all()],
            "images": [i.url for i in self.images_by_product([pid])[pid]],
            "discounts": [
                {"name": d.name, "type": d.type, "value": d.value, "min_quantity": d.min_quantity}
                for d in self.own_discounts(pid)
            ],
            "promocodes": [
                {"code": p.code, "type": p.type, "value": p.value}
                for p in self.db.query(PromoCode).filter_by(product_id=pid).all()
            ],
            "inventory": inventory,
        }

    def active_product(self, product_id):
        product = self.db.get(Product, product_id)
        if not product or not product.is_active:
            return None
        return product
