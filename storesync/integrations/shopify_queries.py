"""
GraphQL documents for the Shopify Admin API.

Field selections line up with the read paths in the Shopify mapping table
(``storesync.services.mapping``); only the first variant of a product is read.
"""

PRODUCT_FIELDS = """
fragment ProductFields on Product {
  id
  title
  handle
  descriptionHtml
  status
  tags
  productType
  variants(first: 1) {
    edges {
      node {
        id
        price
        compareAtPrice
        sku
        inventoryQuantity
        inventoryItem {
          id
        }
      }
    }
  }
}
"""

COLLECTION_FIELDS = """
fragment CollectionFields on Collection {
  id
  title
  handle
  descriptionHtml
}
"""

ARTICLE_FIELDS = """
fragment ArticleFields on Article {
  id
  title
  handle
  body
  summary
  isPublished
  tags
  publishedAt
}
"""

PAGE_FIELDS = """
fragment PageFields on Page {
  id
  title
  handle
  body
  isPublished
}
"""

CUSTOMER_FIELDS = """
fragment CustomerFields on Customer {
  id
  email
  firstName
  lastName
  phone
  tags
  note
}
"""


def _list_query(name: str, connection: str, fragment: str, fragment_name: str) -> str:
    return f"""
query {name}($first: Int!, $after: String, $query: String) {{
  {connection}(first: $first, after: $after, query: $query) {{
    edges {{
      node {{
        ...{fragment_name}
      }}
    }}
    pageInfo {{
      hasNextPage
      endCursor
    }}
  }}
}}
{fragment}"""


def _get_query(name: str, root: str, fragment: str, fragment_name: str) -> str:
    return f"""
query {name}($id: ID!) {{
  {root}(id: $id) {{
    ...{fragment_name}
  }}
}}
{fragment}"""


LIST_PRODUCTS = _list_query("ListProducts", "products", PRODUCT_FIELDS, "ProductFields")
LIST_COLLECTIONS = _list_query("ListCollections", "collections", COLLECTION_FIELDS, "CollectionFields")
LIST_ARTICLES = _list_query("ListArticles", "articles", ARTICLE_FIELDS, "ArticleFields")
LIST_CUSTOMERS = _list_query("ListCustomers", "customers", CUSTOMER_FIELDS, "CustomerFields")
LIST_PAGES = _list_query("ListPages", "pages", PAGE_FIELDS, "PageFields")

GET_PRODUCT = _get_query("GetProduct", "product", PRODUCT_FIELDS, "ProductFields")
GET_COLLECTION = _get_query("GetCollection", "collection", COLLECTION_FIELDS, "CollectionFields")
GET_ARTICLE = _get_query("GetArticle", "article", ARTICLE_FIELDS, "ArticleFields")
GET_CUSTOMER = _get_query("GetCustomer", "customer", CUSTOMER_FIELDS, "CustomerFields")
GET_PAGE = _get_query("GetPage", "page", PAGE_FIELDS, "PageFields")

SHOP_QUERY = """
query Shop {
  shop {
    name
  }
}
"""

FIRST_BLOG_QUERY = """
query FirstBlog {
  blogs(first: 1) {
    edges {
      node {
        id
      }
    }
  }
}
"""

FIRST_LOCATION_QUERY = """
query FirstLocation {
  locations(first: 1) {
    edges {
      node {
        id
      }
    }
  }
}
"""

# ----------------------------- mutations ----------------------------- #
PRODUCT_SET = """
mutation ProductSet($input: ProductSetInput!) {
  productSet(input: $input, synchronous: true) {
    product {
      id
      variants(first: 1) {
        edges {
          node {
            id
            inventoryItem {
              id
            }
          }
        }
      }
    }
    userErrors {
      field
      message
    }
  }
}
"""

PRODUCT_UPDATE = """
mutation ProductUpdate($input: ProductInput!) {
  productUpdate(input: $input) {
    product {
      id
    }
    userErrors {
      field
      message
    }
  }
}
"""

PRODUCT_VARIANTS_BULK_UPDATE = """
mutation ProductVariantsBulkUpdate($productId: ID!, $variants: [ProductVariantsBulkInput!]!) {
  productVariantsBulkUpdate(productId: $productId, variants: $variants) {
    productVariants {
      id
    }
    userErrors {
      field
      message
    }
  }
}
"""

INVENTORY_SET_QUANTITIES = """
mutation InventorySetQuantities($input: InventorySetQuantitiesInput!) {
  inventorySetQuantities(input: $input) {
    inventoryAdjustmentGroup {
      reason
    }
    userErrors {
      field
      message
    }
  }
}
"""

PRODUCT_DELETE = """
mutation ProductDelete($input: ProductDeleteInput!) {
  productDelete(input: $input) {
    deletedProductId
    userErrors {
      field
      message
    }
  }
}
"""

COLLECTION_CREATE = """
mutation CollectionCreate($input: CollectionInput!) {
  collectionCreate(input: $input) {
    collection {
      id
    }
    userErrors {
      field
      message
    }
  }
}
"""

COLLECTION_UPDATE = """
mutation CollectionUpdate($input: CollectionInput!) {
  collectionUpdate(input: $input) {
    collection {
      id
    }
    userErrors {
      field
      message
    }
  }
}
"""

COLLECTION_DELETE = """
mutation CollectionDelete($input: CollectionDeleteInput!) {
  collectionDelete(input: $input) {
    deletedCollectionId
    userErrors {
      field
      message
    }
  }
}
"""

ARTICLE_CREATE = """
mutation ArticleCreate($article: ArticleCreateInput!) {
  articleCreate(article: $article) {
    article {
      id
    }
    userErrors {
      field
      message
    }
  }
}
"""

ARTICLE_UPDATE = """
mutation ArticleUpdate($id: ID!, $article: ArticleUpdateInput!) {
  articleUpdate(id: $id, article: $article) {
    article {
      id
    }
    userErrors {
      field
      message
    }
  }
}
"""

ARTICLE_DELETE = """
mutation ArticleDelete($id: ID!) {
  articleDelete(id: $id) {
    deletedArticleId
    userErrors {
      field
      message
    }
  }
}
"""

CUSTOMER_CREATE = """
mutation CustomerCreate($input: CustomerInput!) {
  customerCreate(input: $input) {
    customer {
      id
    }
    userErrors {
      field
      message
    }
  }
}
"""

CUSTOMER_UPDATE = """
mutation CustomerUpdate($input: CustomerInput!) {
  customerUpdate(input: $input) {
    customer {
      id
    }
    userErrors {
      field
      message
    }
  }
}
"""

CUSTOMER_DELETE = """
mutation CustomerDelete($input: CustomerDeleteInput!) {
  customerDelete(input: $input) {
    deletedCustomerId
    userErrors {
      field
      message
    }
  }
}
"""

PAGE_CREATE = """
mutation PageCreate($page: PageCreateInput!) {
  pageCreate(page: $page) {
    page {
      id
    }
    userErrors {
      field
      message
    }
  }
}
"""

PAGE_UPDATE = """
mutation PageUpdate($id: ID!, $page: PageUpdateInput!) {
  pageUpdate(id: $id, page: $page) {
    page {
      id
    }
    userErrors {
      field
      message
    }
  }
}
"""

PAGE_DELETE = """
mutation PageDelete($id: ID!) {
  pageDelete(id: $id) {
    deletedPageId
    userErrors {
      field
      message
    }
  }
}
"""
