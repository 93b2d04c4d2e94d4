from sqlalchemy import Column, Integer, String, Float, Boolean, Text, ForeignKey, DateTime, UniqueConstraint
from base import Base


class User(Base):
    __tablename__ = 'users'
    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, unique=True)
    role = Column(String, nullable=False, default='customer')
    created_at = Column(DateTime)


class UserAddress(Base):
    __tablename__ = 'user_addresses'
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    name = Column(String, nullable=False)
    address = Column(Text, nullable=False)
    city = Column(String, nullable=False)
    state = Column(String, nullable=False)
    country = Column(String, nullable=False)
    pincode = Column(String, nullable=False)
    phone = Column(String, nullable=False)
    is_default = Column(Boolean, nullable=False, default=False)


class Category(Base):
    __tablename__ = 'categories'
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False)
    description = Column(Text, nullable=False, default='')
    is_active = Column(Boolean, nullable=False, default=True)


class Subcategory(Base):
    __tablename__ = 'subcategories'
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)


class CategorySubcategory(Base):
    __tablename__ = 'category_subcategories'
    category_id = Column(Integer, ForeignKey('categories.id', ondelete='CASCADE'), primary_key=True)
    subcategory_id = Column(Integer, ForeignKey('subcategories.id', ondelete='CASCADE'), primary_key=True)


class Size(Base):
    __tablename__ = 'sizes'
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    size_number = Column(Integer)
    type = Column(String)
    category_id = Column(Integer, ForeignKey('categories.id'))


class Color(Base):
    __tablename__ = 'colors'
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False, unique=True)
    color_code = Column(String, nullable=False, unique=True)
    is_active = Column(Boolean, nullable=False, default=True)


class Product(Base):
    __tablename__ = 'products'
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=False, default='')
    price = Column(Float, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    category_id = Column(Integer, ForeignKey('categories.id'), nullable=False)
    subcategory_id = Column(Integer, ForeignKey('subcategories.id'), nullable=False)
    created_at = Column(DateTime)


class ProductImage(Base):
    __tablename__ = 'product_images'
    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(Integer, ForeignKey('products.id', ondelete='CASCADE'), nullable=False)
    url = Column(String, nullable=False)
    color_id = Column(Integer, ForeignKey('colors.id'))


class ProductVariant(Base):
    __tablename__ = 'product_variants'
    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(Integer, ForeignKey('products.id', ondelete='CASCADE'), nullable=False)
    size_id = Column(Integer, ForeignKey('sizes.id'), nullable=False)
    color_id = Column(Integer, ForeignKey('colors.id'), nullable=False)
    quantity = Column(Integer, nullable=False, default=0)


class ProductTag(Base):
    __tablename__ = 'product_tags'
    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(Integer, ForeignKey('products.id', ondelete='CASCADE'), nullable=False)
    tag = Column(String, nullable=False)


class Discount(Base):
    __tablename__ = 'discounts'
    id = Column(Integer, primary_key=True, autoincrement=True)
    # all | categories | subcategories | products
    apply_to = Column(String, nullable=False, default='products')
    name = Column(String, nullable=False, default='')
    type = Column(String, nullable=False)
    value = Column(Float, nullable=False)
    min_quantity = Column(Integer)


class DiscountCategory(Base):
    __tablename__ = 'discount_categories'
    discount_id = Column(Integer, ForeignKey('discounts.id', ondelete='CASCADE'), primary_key=True)
    category_id = Column(Integer, ForeignKey('categories.id', ondelete='CASCADE'), primary_key=True)


class DiscountSubcategory(Base):
    __tablename__ = 'discount_subcategories'
    discount_id = Column(Integer, ForeignKey('discounts.id', ondelete='CASCADE'), primary_key=True)
    subcategory_id = Column(Integer, ForeignKey('subcategories.id', ondelete='CASCADE'), primary_key=True)


class DiscountProduct(Base):
    __tablename__ = 'discount_products'
    discount_id = Column(Integer, ForeignKey('discounts.id', ondelete='CASCADE'), primary_key=True)
    product_id = Column(Integer, ForeignKey('products.id', ondelete='CASCADE'), primary_key=True)


class PromoCode(Base):
    __tablename__ = 'promocodes'
    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(Integer, ForeignKey('products.id', ondelete='CASCADE'))
    code = Column(String, nullable=False, unique=True)
    type = Column(String, nullable=False)
    value = Column(Float, nullable=False)


class CartItem(Base):
    __tablename__ = 'cart_items'
    __table_args__ = (UniqueConstraint('user_id', 'product_id', 'product_variant_id', name='unique_cart_item'),)
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    product_id = Column(Integer, ForeignKey('products.id', ondelete='CASCADE'), nullable=False)
    product_variant_id = Column(Integer, ForeignKey('product_variants.id', ondelete='CASCADE'), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime)


class WishlistItem(Base):
    __tablename__ = 'wishlist_items'
    __table_args__ = (UniqueConstraint('user_id', 'product_id', 'product_variant_id', name='unique_wishlist_item'),)
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    product_id = Column(Integer, ForeignKey('products.id', ondelete='CASCADE'), nullable=False)
    product_variant_id = Column(Integer, ForeignKey('product_variants.id', ondelete='CASCADE'), nullable=False)
    created_at = Column(DateTime)


class Order(Base):
    __tablename__ = 'orders'
    id = Column(Integer, primary_key=True, autoincrement=True)
    order_uuid = Column(String, nullable=False, unique=True)
    user_id = Column(String, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    original_amount = Column(Float, nullable=False)
    total_amount = Column(Float, nullable=False)
    discount_amount = Column(Float, default=0.0)
    promo_code = Column(String)
    promo_amount = Column(Float, default=0.0)
    shipping_amount = Column(Float, default=0.0)
    tax_percentage = Column(Float, default=18)
    tax_amount = Column(Float, default=0.0)
    final_amount = Column(Float, nullable=False)
    status = Column(String, nullable=False, default='pending')
    address_id = Column(Integer, ForeignKey('user_addresses.id'), nullable=False)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)


class OrderItem(Base):
    __tablename__ = 'order_items'
    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey('orders.id', ondelete='CASCADE'), nullable=False)
    product_id = Column(Integer, nullable=False)
    product_variant_id = Column(Integer, nullable=False)
    quantity = Column(Integer, nullable=False)
    original_price = Column(Float, nullable=False)
    discounted_price = Column(Float, nullable=False)
    final_price = Column(Float, nullable=False)
    discount_text = Column(String)


class OrderStatusHistory(Base):
    __tablename__ = 'order_status_history'
    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey('orders.id', ondelete='CASCADE'), nullable=False)
    status = Column(String, nullable=False)
    created_at = Column(DateTime, nullable=False)
    reason = Column(Text)
    updated_by = Column(String)


class OrderShipment(Base):
    __tablename__ = 'order_shipments'
    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey('orders.id', ondelete='CASCADE'), nullable=False)
    tracking_number = Column(String, unique=True)
    carrier = Column(String)
    status = Column(String, nullable=False, default='pending')
    shipped_at = Column(DateTime)
    estimated_delivery = Column(DateTime)
    actual_delivery = Column(DateTime)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)


class OrderPayment(Base):
    __tablename__ = 'order_payments'
    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey('orders.id', ondelete='CASCADE'), nullable=False)
    status = Column(String, nullable=False, default='pending')
    amount = Column(Float, nullable=False)
    payment_method = Column(String, nullable=False)
    transaction_id = Column(String)
    payment_gateway = Column(String)
    gateway_response = Column(Text)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)


class ProductReview(Base):
    __tablename__ = 'product_reviews'
    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(Integer, ForeignKey('products.id', ondelete='CASCADE'), nullable=False)
    user_id = Column(String, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(Text)
    created_at = Column(DateTime)
    updated_at = Column(DateTime)


class CronJob(Base):
    __tablename__ = 'cron_jobs'
    id = Column(Integer, primary_key=True, autoincrement=True)
    job_name = Column(String, nullable=False, unique=True)
    job_url = Column(String, nullable=False)
    description = Column(Text)
    schedule = Column(String)


class CronJobLog(Base):
    __tablename__ = 'cron_job_logs'
    id = Column(Integer, primary_key=True, autoincrement=True)
    job_id = Column(Integer, ForeignKey('cron_jobs.id', ondelete='CASCADE'), nullable=False)
    status = Column(String, nullable=False)
    response_text = Column(Text)
    duration_ms = Column(Integer)
    type = Column(String)
    created_at = Column(DateTime, nullable=False)
